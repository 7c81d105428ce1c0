"""Generator provider implementations (fal.ai).

Each provider module talks to one generator endpoint over httpx:
  video: POST queue submission with a webhook URL -> request id
  image: POST synchronous run per variant -> remote image URLs
"""
