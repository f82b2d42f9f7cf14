"""
Premium feature definitions for CicadaGallery.

FeatureCode: capabilities unlocked by a premium license
Free tier limits: what the free feature set is capped at
"""

from enum import Enum


class FeatureCode(str, Enum):
    """
    Feature codes unlocked by a premium license.
    A perpetual premium license grants all of them.
    """

    # Library
    UNLIMITED_LIBRARY = "unlimited_library"

    # Rating
    STAR_RATINGS = "star_ratings"

    # Filtering
    MULTI_FOLDER_FILTER = "multi_folder_filter"
    MULTI_TAG_FILTER = "multi_tag_filter"
    TAG_FILTER_MODES = "tag_filter_modes"

    # Processing
    PARALLEL_SCENE_DETECTION = "parallel_scene_detection"

    # Playback
    GPU_HQ_PLAYBACK = "gpu_hq_playback"
    CUSTOM_SHADERS = "custom_shaders"
    FRAME_INTERPOLATION = "frame_interpolation"

    # Scenes
    SCENE_THUMBNAILS = "scene_thumbnails"

    @classmethod
    def from_string(cls, value: str) -> "FeatureCode":
        """Convert string to FeatureCode enum."""
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown feature code: {value}") from exc


PREMIUM_FEATURES = frozenset(FeatureCode)

# Free tier caps
FREE_TIER_VIDEO_LIMIT = 100
FREE_TIER_MAX_RATING = 1
MAX_RATING = 5
