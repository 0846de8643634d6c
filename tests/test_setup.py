import os
import subprocess
import sys
from pathlib import Path

from django.core.management import call_command

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def test_project_boots_in_a_fresh_interpreter():
    # Admin autodiscovery imports the booking modules before any DRF view
    env = dict(os.environ, DJANGO_SETTINGS_MODULE="rental_platform.settings")
    result = subprocess.run(
        [sys.executable, "-c", "from rental_platform.wsgi import application"],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=120,
    )
    assert result.returncode == 0, result.stderr


def test_system_checks_pass():
    call_command("check")
