"""Client-side raid sequencing: phase machine, effects, and API wrapper."""
