"""Crisis resources: static list, no storage or AI involved."""

from fastapi import APIRouter

router = APIRouter(tags=["resources"])

CRISIS_RESOURCES = [
    {
        "name": "988 Suicide & Crisis Lifeline",
        "phone": "988",
        "text": "Text 988",
        "available": "24/7",
        "description": "Free and confidential support for people in distress",
    },
    {
        "name": "Crisis Text Line",
        "phone": None,
        "text": "Text HELLO to 741741",
        "available": "24/7",
        "description": "Free, 24/7 support for those in crisis",
    },
    {
        "name": "SAMHSA National Helpline",
        "phone": "1-800-662-4357",
        "text": None,
        "available": "24/7",
        "description": "Treatment referral and information service",
    },
]


@router.get("/crisis-resources", summary="Crisis hotlines and text lines")
async def get_crisis_resources() -> dict:
    return {"resources": CRISIS_RESOURCES}
