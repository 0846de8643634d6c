from django.contrib import admin
from django.contrib import messages
from django.contrib.auth.models import Group
from django.utils.html import format_html

from api.booking.lifecycle import purge_reservation, transition_reservation
from api.booking.models import Reservation, ReservationEvent
from api.branch.models import Branch
from api.customer.models import Customer
from api.exceptions import RentalError
from api.garage.models import Car
from api.permissions import actor_for_staff


class CustomAdminSite(admin.AdminSite):
    site_header = "Rental Management System"
    site_title = "Admin Portal"
    index_title = "Dashboard"

    def get_app_list(self, request, app_label=None):
        app_dict = self._build_app_dict(request)

        custom_groups = [
            {
                'name': 'Setup',
                'app_label': 'Setup',
                'models': self._get_models_for_group(app_dict, ['Branch', 'Car', 'Customer']),
            },
            {
                'name': 'Management',
                'app_label': 'Management',
                'models': self._get_models_for_group(
                    app_dict, ['Reservation', 'PaymentRecord', 'ReservationEvent']
                ),
            },
        ]
        return [group for group in custom_groups if group['models']]

    def _get_models_for_group(self, app_dict, model_names):
        """Models from the api and payments apps whose class name is listed."""
        models = []
        for app_name in ['api', 'payments']:
            if app_name in app_dict:
                for model in app_dict[app_name]['models']:
                    if model['object_name'] in model_names:
                        model.setdefault('admin_url', '#')
                        model.setdefault('add_url', '#')
                        models.append(model)
        return models


# Replace the default admin site
admin.site = CustomAdminSite(name='admin')


def photo_preview(url, height=100):
    return format_html(
        '<a href="{}" target="_blank"><img src="{}" style="height: {}px; display: block;" /></a>',
        url, url, height,
    )


class BranchAdmin(admin.ModelAdmin):
    list_display = ('name', 'address', 'phone')
    search_fields = ('name', 'address')


class CarAdmin(admin.ModelAdmin):
    list_display = ('brand', 'model', 'plate_number', 'branch', 'price_per_day', 'is_available', 'photo_thumbnail')
    list_filter = ('branch', 'brand', 'is_available')
    search_fields = ('brand', 'model', 'plate_number')
    # Maintained by the reservation lifecycle
    readonly_fields = ('is_available', 'photo_thumbnail')

    def photo_thumbnail(self, obj):
        if obj.photo:
            return photo_preview(obj.photo.url, height=60)
        return "-"
    photo_thumbnail.short_description = 'Photo'


class CustomerAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'email', 'phone', 'driver_license', 'license_expiry')
    search_fields = ('first_name', 'last_name', 'email', 'driver_license')


class ReservationEventInline(admin.TabularInline):
    model = ReservationEvent
    extra = 0
    can_delete = False
    fields = ('created_at', 'event', 'from_status', 'to_status', 'actor_role', 'actor_id', 'note')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class ReservationAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'customer_full_name', 'vehicle', 'pickup_time', 'dropoff_time',
        'status', 'confirmation_source', 'created_at',
    )
    list_filter = ('status', 'confirmation_source', 'vehicle__branch')
    search_fields = ('id', 'customer__first_name', 'customer__last_name', 'customer__email', 'vehicle__plate_number')
    date_hierarchy = 'pickup_time'
    inlines = [ReservationEventInline]
    actions = ['activate_selected', 'complete_selected', 'cancel_selected']
    readonly_fields = (
        'vehicle', 'customer', 'pickup_time', 'dropoff_time', 'status', 'version',
        'confirmation_source', 'confirmed_at', 'idempotency_key', 'created_at', 'updated_at',
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('vehicle', 'customer')

    def customer_full_name(self, obj):
        return obj.customer.full_name
    customer_full_name.short_description = 'Customer'

    def has_add_permission(self, request):
        # Reservations are created through checkout only
        return False

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop('delete_selected', None)
        return actions

    def delete_model(self, request, obj):
        purge_reservation(obj.id, actor_for_staff(request.user), f"Deleted in admin by {request.user}")

    def _transition_selected(self, request, queryset, target_status):
        actor = actor_for_staff(request.user)
        done = 0
        for reservation in queryset:
            try:
                transition_reservation(reservation.id, target_status, actor, note=f"Admin: {request.user}")
                done += 1
            except RentalError as e:
                self.message_user(request, f"Reservation {reservation.id}: {e.detail}", level=messages.WARNING)
        if done:
            self.message_user(request, f"Moved {done} reservation(s) to {target_status}.", messages.SUCCESS)

    def activate_selected(self, request, queryset):
        self._transition_selected(request, queryset, Reservation.STATUS_ACTIVE)
    activate_selected.short_description = "Hand over selected reservations (active)"

    def complete_selected(self, request, queryset):
        self._transition_selected(request, queryset, Reservation.STATUS_RETURNED)
    complete_selected.short_description = "Mark selected reservations as returned"

    def cancel_selected(self, request, queryset):
        self._transition_selected(request, queryset, Reservation.STATUS_CANCELLED)
    cancel_selected.short_description = "Cancel selected reservations"


class ReservationEventAdmin(admin.ModelAdmin):
    list_display = ('reservation_ref', 'event', 'from_status', 'to_status', 'actor_role', 'created_at')
    list_filter = ('event', 'actor_role')
    search_fields = ('reservation_ref', 'note')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# --- Registration ---
try:
    admin.site.unregister(Group)
except admin.sites.NotRegistered:
    pass

models_to_register = [
    (Branch, BranchAdmin),
    (Car, CarAdmin),
    (Customer, CustomerAdmin),
    (Reservation, ReservationAdmin),
    (ReservationEvent, ReservationEventAdmin),
]

for model, admin_class in models_to_register:
    try:
        admin.site.unregister(model)
    except admin.sites.NotRegistered:
        pass
    admin.site.register(model, admin_class)
