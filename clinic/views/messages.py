from django.contrib.auth import get_user_model
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.serializers.messaging import MessageCreateSerializer, PageQuerySerializer
from clinic.services.messages import conversations, history, send_message, serialize_message, unread_count

User = get_user_model()


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def conversation_list(request):
    return Response({'ok': True, 'data': conversations(request.user)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def thread(request, user_id: int):
    other = User.objects.filter(id=user_id).first()
    if other is None:
        return Response({'ok': False, 'error': {'code': 'not_found', 'message': 'User not found.'}}, status=404)

    if request.method == 'POST':
        s = MessageCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        try:
            msg = send_message(request.user, other, s.validated_data['content'])
        except PermissionError as e:
            return Response({'ok': False, 'error': {'code': 'permission_denied', 'message': str(e)}}, status=403)
        except ValueError as e:
            return Response({'ok': False, 'error': {'code': 'validation_error', 'message': str(e)}}, status=400)
        return Response({'ok': True, 'data': serialize_message(msg)}, status=201)

    s = PageQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    page, page_size = s.validated_data['page'], s.validated_data['pageSize']
    data, total = history(request.user, other, page=page, page_size=page_size)
    return Response({'ok': True, 'data': data,
                     'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def unread(request):
    return Response({'ok': True, 'count': unread_count(request.user)})
