"""In-process stand-ins for the services the journey talks to."""
