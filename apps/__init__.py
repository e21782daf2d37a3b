"""Django apps of the Findoorz booking and payment core."""
