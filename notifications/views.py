from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .models import Notification
from .serializers import NotificationSerializer


class NotificationViewSet(mixins.ListModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """The logged-in user's notification inbox."""
    serializer_class = NotificationSerializer

    def get_queryset(self):
        # Scoping to the recipient makes other users' notifications 404
        queryset = Notification.objects.filter(recipient=self.request.user).select_related('related_exam')
        is_read = self.request.query_params.get('is_read')
        if is_read is not None and self.action == 'list':
            queryset = queryset.filter(is_read=is_read.lower() == 'true')
        return queryset

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        response.data['unread_count'] = Notification.objects.filter(recipient=request.user, is_read=False).count()
        return response

    @action(detail=True, methods=['patch'], url_path='read')
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.is_read = True
        notification.save(update_fields=['is_read'])
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['patch'], url_path='read-all')
    def mark_all_read(self, request):
        count = Notification.objects.filter(recipient=request.user, is_read=False).update(is_read=True)
        return Response({"status": "All notifications marked as read", "updated": count})
