"""Terminal front-ends: browser and session replay."""
