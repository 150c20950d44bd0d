"""
speakerbot — proactive notifications for community speaker slots

Reminds speakers the day before and the day of their talk, and posts the
upcoming week's schedule to the community's announcements channel.
"""

__version__ = "1.0.0"
