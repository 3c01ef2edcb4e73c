from pinme.models.toy import Toy
from pinme.models.play_session import PlaySession
from pinme.models.reminder_setting import ReminderSetting
from pinme.models.notification import Notification
from pinme.models.device_token import DeviceToken

__all__ = ["Toy", "PlaySession", "ReminderSetting", "Notification", "DeviceToken"]
