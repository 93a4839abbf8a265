from mindwell.models.user import User
from mindwell.models.mood_entry import Mood, MoodEntry
from mindwell.models.intervention import Intervention, InterventionType
from mindwell.models.community_post import CommunityPost
from mindwell.models.post_comment import PostComment
from mindwell.models.user_progress import UserProgress

__all__ = [
    "User",
    "Mood",
    "MoodEntry",
    "Intervention",
    "InterventionType",
    "CommunityPost",
    "PostComment",
    "UserProgress",
]
