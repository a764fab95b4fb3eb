"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Post Event"
    debug: bool = False
    log_file: str = ""  # Empty means ~/.logs/post_event/latest.log

    # Database
    database_url: str = "sqlite:///./post_event.db"

    # Attendance preview
    displayed_invitees_limit: int = 10

    # Notifications
    invite_notification_message_key: str = "discourse_calendar.invite_user_notification"
    notification_sweep_interval_minutes: int = 5

    # Realtime publish channel, the topic id is appended
    publish_channel_prefix: str = "event-channel"

    # Topic-level field mirroring the event start of a topic's first post
    starts_at_field_name: str = "post_event_starts_at"


settings = Settings()
