from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.serializers.messaging import NotificationReadSerializer
from clinic.services.notifications import list_notifications, mark_notifications_read


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications(request):
    unread_only = (request.query_params.get('unread') or '0') in ['1', 'true', 'True']
    return Response({'ok': True, 'data': list_notifications(request.user, unread_only=unread_only)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_read(request):
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    updated = mark_notifications_read(request.user, ids=s.validated_data.get('ids'), all_=s.validated_data['all'])
    return Response({'ok': True, 'updated': updated})
