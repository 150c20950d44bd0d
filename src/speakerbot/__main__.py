"""Allow `python -m speakerbot` to launch the service."""

from speakerbot.main import run

run()
