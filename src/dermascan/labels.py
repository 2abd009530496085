"""Fixed label set and condition descriptions.

The order of LABELS matches the output layout of the bundled classifier.
"""

from __future__ import annotations

LABELS: tuple[str, ...] = (
    "Eczema",
    "Melanoma",
    "Atopic Dermatitis",
    "Basal Cell Carcinoma",
    "Melanocytic Nevi",
    "Benign Keratosis",
    "Psoriasis",
    "Seborrheic Keratoses",
    "Tinea",
    "Warts",
)

DESCRIPTIONS: dict[str, str] = {
    "Eczema": "A condition causing inflamed, itchy, cracked, and rough skin.",
    "Melanoma": "A serious form of skin cancer that develops in the pigment-producing cells.",
    "Atopic Dermatitis": "A chronic skin condition characterized by dry, itchy, and inflamed skin.",
    "Basal Cell Carcinoma": "A common skin cancer that arises from the basal cells in the epidermis.",
    "Melanocytic Nevi": "Commonly known as moles, these are benign proliferations of melanocytes.",
    "Benign Keratosis": "Non-cancerous skin growths that may appear as rough, scaly patches.",
    "Psoriasis": (
        "An autoimmune condition that causes rapid skin cell turnover, leading to scaling and inflammation."
    ),
    "Seborrheic Keratoses": "Common, benign skin growths that appear as brown or black waxy plaques.",
    "Tinea": "A group of contagious fungal infections affecting the skin, hair, or nails.",
    "Warts": "Small, grainy skin growths caused by the human papillomavirus (HPV).",
}

UNKNOWN_DESCRIPTION = "No additional information available."
NO_CONDITION_DESCRIPTION = "No condition detected."

DISCLAIMER = (
    "Disclaimer: This is an AI-assisted prediction and should not replace professional "
    "medical advice. Always consult a healthcare professional for accurate diagnosis and treatment."
)


def describe(label: str | None) -> str:
    """Return the static description for a predicted label."""
    if not label:
        return NO_CONDITION_DESCRIPTION
    return DESCRIPTIONS.get(label, UNKNOWN_DESCRIPTION)
