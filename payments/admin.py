from django.contrib import admin
from django.contrib import messages

from api.admin import photo_preview
from api.exceptions import RentalError
from api.permissions import actor_for_staff
from payments.models import PaymentRecord
from payments.verification import resolve_verification


class PaymentRecordAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'customer_name', 'reservation', 'amount', 'currency', 'method',
        'outcome', 'submitted_at', 'slip_preview',
    )
    list_filter = ('outcome', 'method', 'submitted_at')
    search_fields = ('reservation__id', 'reservation__customer__first_name', 'reservation__customer__last_name', 'reference')
    ordering = ('-submitted_at',)
    actions = ['approve_selected', 'reject_selected']
    readonly_fields = (
        'reservation', 'amount', 'currency', 'method', 'proof', 'slip_preview', 'proof_sha256',
        'reference', 'submitted_at', 'outcome', 'verified_by', 'verified_at', 'operator_note',
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('reservation', 'reservation__customer')

    def has_add_permission(self, request):
        return False

    def customer_name(self, obj):
        return obj.reservation.customer.full_name
    customer_name.short_description = 'Customer'

    def slip_preview(self, obj):
        if obj.proof:
            return photo_preview(obj.proof.url)
        return "No slip"
    slip_preview.short_description = 'Slip'

    def _resolve_selected(self, request, queryset, approve):
        actor = actor_for_staff(request.user)
        done = 0
        for record in queryset.filter(outcome=PaymentRecord.OUTCOME_PENDING):
            try:
                resolve_verification(record.reservation_id, approve, actor, note=f"Admin: {request.user}")
                done += 1
            except RentalError as e:
                self.message_user(request, f"Payment {record.id}: {e.detail}", level=messages.WARNING)
        verb = "Approved" if approve else "Rejected"
        self.message_user(request, f"{verb} {done} payment(s).", messages.SUCCESS)

    def approve_selected(self, request, queryset):
        self._resolve_selected(request, queryset, approve=True)
    approve_selected.short_description = "Approve selected payment slips"

    def reject_selected(self, request, queryset):
        self._resolve_selected(request, queryset, approve=False)
    reject_selected.short_description = "Reject selected payment slips"


admin.site.register(PaymentRecord, PaymentRecordAdmin)
