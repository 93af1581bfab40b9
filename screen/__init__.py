"""Screen package — which apps are blocked, and how strictly."""
