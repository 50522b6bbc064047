import csv
from datetime import datetime
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.http import HttpResponse, FileResponse
from django.utils import timezone
from core.dto import PaymentDTO
from api.permissions import IsStaffOrReadOnly
from api.filters import ResidenceQueryFilterBackend
from audit.helpers import log_payment
from common.pdf_utils import generate_rent_receipt_pdf
from residences.access import filter_by_accessible_residences
from .models import Payment
from .serializers import PaymentSerializer, PaymentListSerializer, PaySerializer
from .services import PaymentService


class PaymentViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Payment management

    - Staff: payments of accessible residences
    - Residents: their own payments, which they may pay

    Filters: ?residence=, ?status=, ?payment_type=, ?user=, ?month=YYYY-MM
    """
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_permissions(self):
        if self.action in ('pay', 'receipt'):
            return [IsAuthenticated()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.action == 'list':
            return PaymentListSerializer
        return PaymentSerializer

    def get_queryset(self):
        user = self.request.user
        queryset = Payment.objects.select_related('user', 'lot', 'residence')
        if user.is_staff_role:
            queryset = filter_by_accessible_residences(queryset, user)
        else:
            queryset = queryset.filter(user=user)

        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('payment_type'):
            queryset = queryset.filter(payment_type=params['payment_type'])
        if params.get('user') and user.is_staff_role:
            queryset = queryset.filter(user_id=params['user'])
        month = self._parse_month(params.get('month'))
        if month:
            queryset = queryset.filter(due_date__year=month.year, due_date__month=month.month)
        return queryset

    def _parse_month(self, value):
        if not value:
            return None
        try:
            return datetime.strptime(value, '%Y-%m').date()
        except ValueError:
            return None

    def perform_create(self, serializer):
        from residences.access import can_manage_residence
        from core.exceptions import PermissionDeniedError
        if not can_manage_residence(self.request.user, serializer.validated_data['residence']):
            raise PermissionDeniedError("You don't have access to this residence")
        serializer.save()

    @action(detail=False, methods=['get'])
    def pending(self, request):
        """Unpaid payments (pending, partial, overdue), oldest due first"""
        payments = PaymentService().repository.pending(self.filter_queryset(self.get_queryset()))
        serializer = PaymentListSerializer(payments, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post'])
    def pay(self, request, pk=None):
        """
        Record a payment.

        Body: { "amount": 500.00, "payment_method": "TRANSFER", "reference": "..." }
        Amounts above the remaining balance are clamped.
        """
        payment = self.get_object()
        serializer = PaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        previous_paid = payment.paid_amount
        payment = PaymentService().pay(payment.id, PaymentDTO(
            amount=data['amount'],
            payment_method=data.get('payment_method', ''),
            reference=data.get('reference', ''),
        ))
        log_payment(request.user, payment, payment.paid_amount - previous_paid, request)
        return Response(PaymentSerializer(payment, context={'request': request}).data)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """
        Collection figures for a month (default: current month).

        Query: ?month=YYYY-MM&residence=<id>
        """
        month = self._parse_month(request.query_params.get('month'))
        queryset = self.filter_queryset(self.get_queryset())
        return Response(PaymentService().summary(queryset, month))

    @action(detail=False, methods=['get'])
    def arrears(self, request):
        """Overdue debts grouped by payer and lot, largest first (staff only)"""
        if not request.user.is_staff_role:
            return Response(
                {'detail': 'Only agency staff can view arrears.'},
                status=status.HTTP_403_FORBIDDEN
            )
        queryset = self.filter_queryset(self.get_queryset())
        return Response(PaymentService().arrears(queryset))

    @action(detail=True, methods=['get'])
    def receipt(self, request, pk=None):
        """Download the PDF receipt of a paid rent or charges payment"""
        payment = self.get_object()
        receipt = PaymentService().get_or_create_receipt(payment)
        signer = request.user if request.user.is_staff_role else None
        pdf_buffer = generate_rent_receipt_pdf(receipt, signed_by_user=signer)
        filename = f"receipt_{receipt.receipt_number}_{receipt.period_start.strftime('%Y_%m')}.pdf"
        return FileResponse(pdf_buffer, as_attachment=True, filename=filename, content_type='application/pdf')

    @action(detail=False, methods=['get'])
    def export(self, request):
        """CSV export of the filtered payments"""
        payments = self.filter_queryset(self.get_queryset()).order_by('due_date', 'id')
        response = HttpResponse(content_type='text/csv')
        stamp = timezone.localdate().strftime('%Y%m%d')
        response['Content-Disposition'] = f'attachment; filename="payments_{stamp}.csv"'

        writer = csv.writer(response)
        writer.writerow([
            'id', 'residence', 'lot', 'payer', 'type', 'label', 'amount',
            'paid_amount', 'due_date', 'status', 'paid_at', 'method', 'reference'
        ])
        for payment in payments:
            writer.writerow([
                payment.id,
                payment.residence.name,
                payment.lot.lot_number if payment.lot else '',
                payment.user.username,
                payment.payment_type,
                payment.label,
                payment.amount,
                payment.paid_amount,
                payment.due_date.isoformat(),
                payment.status,
                payment.paid_at.isoformat() if payment.paid_at else '',
                payment.payment_method,
                payment.reference,
            ])
        return response
