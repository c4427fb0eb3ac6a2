from datetime import datetime

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class TimePlugin:
    """Plugin that gives the model access to the local clock."""

    def format_timestamp(self) -> str:
        """Format the current local time."""
        return datetime.now().strftime(TIME_FORMAT)

    def get_current_time(self) -> dict:
        """Get the current local time"""
        return {"current_time": self.format_timestamp()}

    def hook_provide_tools(self):
        """Return tools this plugin provides for auto-registration."""
        return [self.get_current_time]
