"""drone-cron: trigger Drone CI rebuilds on cron schedules."""

__app_name__ = "drone-cron"
__version__ = "0.3.0"
