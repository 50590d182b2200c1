"""Command-line interface for object-spine (``objectspine``)."""
