"""Deterministic prompt construction from structured generation parameters.

Image prompts come in two flavours: ``basic`` (short model description plus
setting) and ``advanced`` (style template with lighting, shot and fabric
sections). Video prompts are either a predefined motion prompt or are
assembled from movement, fabric, camera and vibe clauses.
"""

from __future__ import annotations

import re
from typing import Any

# value -> prompt segment. "default" always maps to "" unless noted.

GENDERS: dict[str, str] = {
    "female": "female",
    "male": "male",
    "non_binary": "non-binary",
}

AGE_RANGES: dict[str, str] = {
    "early_20s": "in their early 20s",
    "late_20s": "in their late 20s",
    "mid_30s": "in their mid-30s",
    "mid_40s": "in their mid-40s",
    "50_plus": "aged 50 or older",
}

ETHNICITIES: dict[str, str] = {
    "caucasian": "of Caucasian ethnicity",
    "black": "of Black ethnicity",
    "east_asian": "of East Asian ethnicity",
    "south_asian": "of South Asian ethnicity",
    "hispanic_latino": "of Hispanic or Latino/a/x ethnicity",
    "middle_eastern": "of Middle Eastern ethnicity",
    "indigenous": "of Indigenous ethnicity",
    "multiracial": "of multiracial ethnicity",
}

BODY_TYPES: dict[str, str] = {
    "hourglass": "with an hourglass body type",
    "athletic": "with an athletic body type",
    "pear": "with a pear-shaped body type",
    "slim_build": "with a slim build",
    "curvy_figure": "with a curvy figure",
    "plus_size_body": "with a plus-size body type",
}

BODY_SIZES: dict[str, str] = {
    "petite_frame": "with a petite frame",
    "average_build": "with an average build",
    "tall_stature": "with a tall stature",
}

HAIR_STYLES: dict[str, str] = {
    "long_wavy_cascading": "with long, wavy hair cascading over the shoulders",
    "sleek_bob_haircut": "with a sleek bob haircut",
    "intricate_braided_updo": "with an intricate braided updo",
    "short_textured_pixie": "with a short, textured pixie cut with choppy layers",
}

EXPRESSIONS: dict[str, str] = {
    "serene_gentle_smile": "with a serene and gentle smile",
    "intense_captivating_gaze": "with an intense, captivating gaze, looking directly into the camera",
    "joyful_exuberant_laugh": "with a joyful and exuberant laugh",
    "neutral_professional_expression": "with a neutral, professional expression",
}

POSES: dict[str, str] = {
    "natural_relaxed_pose": "a natural, relaxed pose",
    "professional_poised_stance": "a professional and poised stance",
    "editorial_dramatic_artistic": "a dramatic, artistic editorial pose",
    "active_dynamic_movement": "an active, dynamic pose showcasing movement",
    "elegant_contrapposto": "an elegant contrapposto pose",
}

BACKGROUNDS: dict[str, str] = {
    "outdoor_nature_elements": "an outdoor nature setting with appropriate natural elements",
    "beach_ocean_waves": "a beautiful beach setting with ocean waves and soft sand",
    "studio_white_seamless_minimalist": "a modern minimalist photo studio with a seamless white background",
    "studio_grey_clean": "a minimalist studio setting with a light grey, clean background",
    "industrial_loft_exposed_brick": "an industrial loft with exposed brick walls and large windows",
    "urban_streetscape_night_city_lights": "a bustling urban streetscape at night, with blurred city lights creating bokeh",
}

TIMES_OF_DAY: dict[str, str] = {
    "golden_hour_warm_glow": "during the golden hour, with warm, low, and directional sunlight casting long, soft shadows",
    "blue_hour_cool_ambiance": "during the blue hour, with cool, soft ambient light just before sunrise or after sunset",
    "overcast_day_soft_diffused_light": "on an overcast day, providing soft, diffused, and even light",
    "night_time_artificial_city_glow": "at night, illuminated by artificial lights, neon signs, or the ambient glow of a city",
}

LIGHTING_TYPES: dict[str, str] = {
    "natural_available_light": "Utilizing natural, available light characteristic of the chosen time and setting.",
    "studio_softbox_even": "Professional studio lighting with large softboxes for even, flattering illumination and minimal harsh shadows.",
    "low_key_lighting_dark_dramatic": "Low-key lighting with deep shadows and a dark background, creating a dramatic and moody atmosphere.",
    "rim_lighting_subject_separation": "Using rim lighting to create a bright outline around the subject, separating them from the background.",
}

CAMERA_ANGLES: dict[str, str] = {
    "low_angle_emphasize_height": "a low-angle shot, making the subject appear powerful and tall",
    "profile_view_side": "a profile view, showing the subject from the side",
    "full_body_shot_entire_outfit": "a full body shot, showcasing the entire outfit from head to toe",
    "medium_shot_waist_up_focus": "a medium shot, typically from the waist up, balancing subject and some context",
    "close_up_facial_expression_details": "a close-up, focusing on facial expression or specific garment details",
}

FASHION_STYLES: dict[str, tuple[str, str]] = {
    # value -> (base template, style note)
    "default_style": (
        "Fashion photograph: A {gender} model, {model_details}, {pose_details} stylishly wearing this clothing item.",
        "",
    ),
    "high_fashion_editorial": (
        "High-fashion editorial photograph: A {gender} model, {model_details}, {pose_details} stylishly wearing this clothing item.",
        "This image should have strong artistic expression, a conceptual narrative, and dramatic flair typical of high-fashion editorials.",
    ),
    "lifestyle_street": (
        "Street style photograph: A {gender} model, {model_details}, captured in a candid moment {pose_details} stylishly wearing this clothing item.",
        "Aim for authenticity and a natural, candid feel, showcasing fashion in a real-world urban or everyday environment.",
    ),
    "ecommerce_product": (
        "E-commerce product photograph: The clothing item is clearly showcased on a {gender} model, {model_details}, {pose_details}.",
        "Focus on clear, appealing depiction of the garment, ensuring accurate representation of color, texture, and fit, usually against a clean background.",
    ),
}

DEFAULT_FABRIC = (
    "The fabric of the clothing item should be rendered with realistic texture, drape, and interaction with light."
)
QUALITY_STATEMENT = (
    "The final image must be photorealistic, highly detailed, with impeccable exposure and color accuracy. "
    "Ensure the clothing fits the model perfectly and is the clear visual focus of the image."
)

PREDEFINED_VIDEO_PROMPTS: dict[str, str] = {
    "360_turn": "The model executes a single, slow 360-degree turn on the spot, while the camera remains completely static.",
    "walks_toward_camera_pullback": "The model takes two slow, deliberate steps directly toward the camera, as the camera performs a smooth, subtle pull-back.",
    "turn_to_profile": "The model gracefully turns her body 90 degrees to the side, holding the final pose. The camera remains static throughout the movement.",
    "slow_zoom_out_reveal": "The model stands perfectly still, holding her pose, as the camera executes a slow, continuous pull-back, revealing more of the surrounding environment.",
}

MODEL_MOVEMENTS: dict[str, str] = {
    "effortless_poise": "settles into a composed, graceful pose with minimal movement",
    "subtle_posture_shift": "makes a slight, elegant shift in posture or weight distribution",
    # possessive segments start with "s "
    "engaging_gaze_shift": "s gaze softly meets the camera or drifts thoughtfully to the side",
    "gentle_hair_sway": "s hair subtly catches the light or sways gently as if from a light breeze",
}

FABRIC_MOTIONS: dict[str, str] = {
    "fabric_settles_naturally": "settles or drapes naturally according to gravity and the model's form",
    "soft_flow_with_movement": "flows softly in response to the model's movement",
    "airy_billow_subtle": "billows lightly and subtly, as if touched by a soft, almost imperceptible breeze",
}

CAMERA_ACTIONS: dict[str, str] = {
    "composed_static_shot": "maintains a steady, well-composed shot, focusing attention on the model and garment details",
    "slow_zoom_to_garment_detail": "performs a slow, deliberate zoom towards a key garment detail or texture",
    "gentle_orbit_around_model": "executes a gentle, smooth orbiting motion around the model, showcasing the look from multiple angles",
}

AESTHETIC_VIBES: dict[str, str] = {
    "natural_effortless_style": "Exudes a natural and effortless style.",
    "timeless_chic_sophistication": "Timelessly chic and sophisticated.",
    "clean_studio_polish": "Polished and sharp, with a clean, professional studio aesthetic.",
}

DEFAULT_VIDEO_PROMPT = "A photorealistic fashion model posing elegantly in a stylish outfit."


def _segment(options: dict[str, str], value: Any) -> str:
    if not value or value == "default":
        return ""
    return options.get(str(value), "")


def build_image_prompt(parameters: dict[str, Any], settings_mode: str = "basic") -> str:
    """Build the image edit prompt for one set of model parameters."""
    gender = GENDERS.get(parameters.get("gender") or "", "female")
    if settings_mode == "advanced":
        return _build_advanced_image_prompt(parameters, gender)

    prompt = f"Create a PHOTOREALISTIC image of a {gender} fashion model"
    attributes = [
        s for s in (
            _segment(BODY_TYPES, parameters.get("body_type")),
            _segment(BODY_SIZES, parameters.get("body_size")),
            _segment(AGE_RANGES, parameters.get("age_range")),
            _segment(ETHNICITIES, parameters.get("ethnicity")),
        ) if s
    ]
    if attributes:
        prompt += ", " + ", ".join(attributes)

    pose = _segment(POSES, parameters.get("pose_style"))
    if pose:
        prompt += f" standing in {pose}"
    prompt += " wearing this clothing item in the image."

    background = _segment(BACKGROUNDS, parameters.get("background"))
    if background:
        prompt += f"\n\nSetting: {background}."

    prompt += (
        "\n\nStyle: The model should look authentic and relatable, with a natural expression and subtle smile. "
        "The clothing must fit perfectly and be the visual focus of the image."
        "\n\nTechnical details: Professional fashion photography with perfect exposure and color accuracy."
    )
    return prompt


def _build_advanced_image_prompt(parameters: dict[str, Any], gender: str) -> str:
    style_key = parameters.get("fashion_style") or "default_style"
    template, style_note = FASHION_STYLES.get(style_key, FASHION_STYLES["default_style"])

    details = [
        s for s in (
            _segment(AGE_RANGES, parameters.get("age_range")),
            _segment(ETHNICITIES, parameters.get("ethnicity")),
            _segment(BODY_TYPES, parameters.get("body_type")),
            _segment(BODY_SIZES, parameters.get("body_size")),
            _segment(HAIR_STYLES, parameters.get("hair_style")),
            _segment(EXPRESSIONS, parameters.get("model_expression")),
        ) if s
    ]
    pose = _segment(POSES, parameters.get("pose_style"))
    prompt = template.format(
        gender=gender,
        model_details=", ".join(details) if details else "with typical features",
        pose_details=f"in {pose}" if pose else "",
    )
    if style_note:
        prompt += f"\n\nOverall Style Notes: {style_note}"

    setting = _segment(BACKGROUNDS, parameters.get("background"))
    if not setting and style_key == "ecommerce_product":
        setting = BACKGROUNDS["studio_white_seamless_minimalist"]
    time_of_day = _segment(TIMES_OF_DAY, parameters.get("time_of_day"))
    if time_of_day:
        setting = f"{setting}, {time_of_day}" if setting else f"The scene is set {time_of_day}"
    if setting:
        prompt += f"\n\nSetting: {setting}."

    lighting = _segment(LIGHTING_TYPES, parameters.get("lighting_type"))
    if not lighting:
        lighting = (
            LIGHTING_TYPES["studio_softbox_even"]
            if style_key == "ecommerce_product"
            else "Professional fashion photography lighting."
        )
    prompt += f"\n\nLighting: {lighting}"

    angle = _segment(CAMERA_ANGLES, parameters.get("camera_angle"))
    if angle:
        prompt += f"\n\nShot Details: {angle}."

    prompt += f"\n\nFabric Rendering Specifics: {DEFAULT_FABRIC}"
    prompt += f"\n\nTechnical & Quality Requirements: {QUALITY_STATEMENT}"

    prompt = re.sub(r"\.\s*\.", ".", prompt)
    return re.sub(r"[ \t]{2,}", " ", prompt).strip()


def build_video_prompt(parameters: dict[str, Any]) -> str:
    """Build the motion prompt for a video job."""
    predefined = parameters.get("selected_predefined_prompt")
    if predefined and predefined != "custom" and predefined in PREDEFINED_VIDEO_PROMPTS:
        return PREDEFINED_VIDEO_PROMPTS[predefined]

    movement = MODEL_MOVEMENTS.get(parameters.get("model_movement") or "", "")
    fabric = FABRIC_MOTIONS.get(parameters.get("fabric_motion") or "", "")
    camera = CAMERA_ACTIONS.get(parameters.get("camera_action") or "", "")
    vibe = AESTHETIC_VIBES.get(parameters.get("aesthetic_vibe") or "", "")

    clauses: list[str] = []
    if movement:
        prefix = "The model'" if movement.startswith("s ") else "The model "
        clause = f"{prefix}{movement}"
        if fabric:
            clause += f", and the garment's fabric {fabric}"
        clauses.append(clause + ".")
    elif fabric:
        clauses.append(f"The garment's fabric {fabric}.")
    if camera:
        clauses.append(f"The camera {camera}.")
    if vibe:
        clauses.append(vibe)

    return " ".join(clauses) if clauses else DEFAULT_VIDEO_PROMPT
