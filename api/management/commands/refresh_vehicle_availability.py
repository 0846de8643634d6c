from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone
from api.booking.availability import is_occupied_at, refresh_vehicle_availability
from api.garage.models import Car
import pytz


class Command(BaseCommand):
    help = "Recompute every car's availability flag from the reservations covering the current time"

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help="Report changes without saving them")

    def handle(self, *args, **options):
        local_tz = pytz.timezone(settings.TIME_ZONE)
        now = timezone.now()
        self.stdout.write(f"Refreshing availability at {now.astimezone(local_tz):%Y-%m-%d %H:%M %Z}")

        changed = 0
        for car in Car.objects.order_by('plate_number'):
            before = car.is_available
            if options['dry_run']:
                after = not is_occupied_at(car.id, now)
            else:
                after = refresh_vehicle_availability(car, now=now)
            if after != before:
                changed += 1
                state = "available" if after else "occupied"
                self.stdout.write(f"  {car}: now {state}")

        if changed:
            self.stdout.write(self.style.SUCCESS(f"Updated availability for {changed} car(s)"))
        else:
            self.stdout.write("No cars needed updates")
