"""EarlBox - share images and videos by an unguessable link."""

__version__ = "0.1.0"
