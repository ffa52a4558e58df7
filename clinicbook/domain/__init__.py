"""Domain packages of the clinic booking service."""
