from django.http import HttpResponse
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response

from invoicing.documents import pdf_filename
from invoicing.renderers import PDFRenderer
from invoicing.serializers import (
    InvoiceListSerializer,
    InvoiceQuerySerializer,
    InvoiceSerializer,
    InvoiceStatusSerializer,
    MarkPaidSerializer,
    PaymentSerializer,
    SendInvoiceSerializer,
)
from invoicing.services import InvoiceService


class InvoiceViewSet(viewsets.ModelViewSet):
    """
    Invoice endpoints under ``/api/v1/invoices/``.

    All reads and writes go through ``InvoiceService``, which scopes them
    to the authenticated owner.
    """

    serializer_class = InvoiceSerializer

    def get_serializer_class(self):
        if self.action in ('list', 'overdue'):
            return InvoiceListSerializer
        return InvoiceSerializer

    def get_queryset(self):
        query = InvoiceQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return InvoiceService().list_invoices(self.request.user, query.validated_data)

    def get_object(self):
        return InvoiceService().get_invoice(self.request.user, self.kwargs['pk'])

    def create(self, request, *args, **kwargs):
        serializer = InvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = InvoiceService().create_invoice(request.user, serializer.validated_data)
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = InvoiceSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        invoice = InvoiceService().update_invoice(request.user, kwargs['pk'], serializer.validated_data)
        return Response(InvoiceSerializer(invoice).data)

    def destroy(self, request, *args, **kwargs):
        InvoiceService().delete_invoice(request.user, kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(InvoiceService().get_stats(request.user))

    @action(detail=False, methods=['get'])
    def overdue(self, request):
        queryset = InvoiceService().get_overdue_invoices(request.user)
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(InvoiceListSerializer(page, many=True).data)

    @action(detail=True, methods=['post'])
    def send(self, request, pk=None):
        serializer = SendInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = InvoiceService().send_invoice(request.user, pk, serializer.validated_data)
        return Response({
            'message': 'Invoice sent successfully',
            'invoice': InvoiceSerializer(invoice).data,
        }, status=status.HTTP_202_ACCEPTED)

    @action(detail=True, methods=['patch'], url_path='status', url_name='status')
    def update_status(self, request, pk=None):
        serializer = InvoiceStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = InvoiceService().update_status(request.user, pk, serializer.validated_data)
        return Response(InvoiceSerializer(invoice).data)

    @action(detail=True, methods=['post'], url_path='mark-sent')
    def mark_sent(self, request, pk=None):
        invoice = InvoiceService().mark_as_sent(request.user, pk)
        return Response(InvoiceSerializer(invoice).data)

    @action(detail=True, methods=['post'], url_path='mark-viewed')
    def mark_viewed(self, request, pk=None):
        invoice = InvoiceService().mark_as_viewed(request.user, pk)
        return Response(InvoiceSerializer(invoice).data)

    @action(detail=True, methods=['post'], url_path='mark-paid')
    def mark_paid(self, request, pk=None):
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = InvoiceService().mark_as_paid(request.user, pk, serializer.validated_data)
        return Response(InvoiceSerializer(invoice).data)

    @action(detail=True, methods=['get', 'post'])
    def payments(self, request, pk=None):
        service = InvoiceService()
        if request.method == 'GET':
            payments = service.list_payments(request.user, pk)
            return Response({'data': PaymentSerializer(payments, many=True).data})

        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice, payment = service.add_payment(request.user, pk, serializer.validated_data)
        return Response({
            'payment': PaymentSerializer(payment).data,
            'invoice': InvoiceSerializer(invoice).data,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def duplicate(self, request, pk=None):
        invoice = InvoiceService().duplicate_invoice(request.user, pk)
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], renderer_classes=[JSONRenderer, PDFRenderer])
    def pdf(self, request, pk=None):
        invoice, pdf_content = InvoiceService().render_pdf(request.user, pk)
        response = HttpResponse(pdf_content, content_type='application/pdf')
        response['Content-Disposition'] = f'inline; filename="{pdf_filename(invoice)}"'
        return response
