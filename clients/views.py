from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from clients.serializers import (
    ClientQuerySerializer,
    ClientSearchSerializer,
    ClientSerializer,
    ClientSummarySerializer,
)
from clients.services import ClientService
from invoicing.serializers import InvoiceListSerializer
from invoicing.services import InvoiceService


class ClientViewSet(viewsets.ModelViewSet):
    """
    Client endpoints under ``/api/v1/clients/``.

    Reads and writes go through ``ClientService`` so every query is scoped
    to the authenticated owner.
    """

    serializer_class = ClientSerializer

    def get_queryset(self):
        query = ClientQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return ClientService().list_clients(self.request.user, query.validated_data)

    def get_object(self):
        return ClientService().get_client(self.request.user, self.kwargs['pk'])

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        client = ClientService().create_client(request.user, serializer.validated_data)
        return Response(self.get_serializer(client).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        client = ClientService().update_client(request.user, kwargs['pk'], serializer.validated_data)
        return Response(self.get_serializer(client).data)

    def destroy(self, request, *args, **kwargs):
        ClientService().delete_client(request.user, kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(ClientService().get_stats(request.user))

    @action(detail=False, methods=['get'])
    def search(self, request):
        query = ClientSearchSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        clients = ClientService().search_clients(
            request.user, query.validated_data['q'], limit=query.validated_data['limit']
        )
        return Response({'data': ClientSummarySerializer(clients, many=True).data})

    @action(detail=True, methods=['get'])
    def invoices(self, request, pk=None):
        client = self.get_object()
        queryset = InvoiceService().list_invoices(request.user, {'client': client.pk})
        page = self.paginate_queryset(queryset)
        serializer = InvoiceListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=True, methods=['post'], url_path='refresh-financials')
    def refresh_financials(self, request, pk=None):
        client = ClientService().update_financials(self.get_object())
        return Response(self.get_serializer(client).data)
