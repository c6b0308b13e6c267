"""Database models for Tipoko API."""
from tipoko.models.user import User
from tipoko.models.channel import Channel
from tipoko.models.video import Category, Video, VideoView, VideoLike, Tag, VideoTag
from tipoko.models.comment import Comment
from tipoko.models.subscription import Subscription
from tipoko.models.ad import Ad, AdImpression, AdClick
from tipoko.models.earning import UserEarning, WeeklyEarning
from tipoko.models.payment import Payment, PaymentTransaction
from tipoko.models.platform_setting import PlatformSetting
from tipoko.models.playlist import Playlist, PlaylistVideo
from tipoko.models.notification import Notification
from tipoko.models.library import WatchHistory, SavedVideo, Report

__all__ = [
    "User",
    "Channel",
    "Category",
    "Video",
    "VideoView",
    "VideoLike",
    "Tag",
    "VideoTag",
    "Comment",
    "Subscription",
    "Ad",
    "AdImpression",
    "AdClick",
    "UserEarning",
    "WeeklyEarning",
    "Payment",
    "PaymentTransaction",
    "PlatformSetting",
    "Playlist",
    "PlaylistVideo",
    "Notification",
    "WatchHistory",
    "SavedVideo",
    "Report",
]
