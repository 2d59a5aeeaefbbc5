from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from clinic.serializers.messaging import PharmacyQuerySerializer
from clinic.services.pharmacies import nearby_pharmacies


@api_view(['GET'])
@permission_classes([AllowAny])
def nearby(request):
    """Pharmacies around ``lat``/``lng``, closest first.
    Query params:
      - lat, lng: required
      - radius: metres, capped server side
      - q: name contains
    """
    s = PharmacyQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    data = nearby_pharmacies(vd['lat'], vd['lng'], radius=vd.get('radius'), q=(vd.get('q') or '').strip() or None)
    return Response({'ok': True, 'data': data, 'total': len(data)})
