import json
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .autosave import FormAutosave
from .store import StateKeys, StatePersistence, owner_key_for_request

logger = logging.getLogger(__name__)


def _store_or_error(request):
    if not owner_key_for_request(request):
        return None, Response(
            {'error': 'Missing client identity', 'detail': 'Sign in or send an X-Client-Id header'},
            status=status.HTTP_400_BAD_REQUEST
        )
    return StatePersistence.for_request(request), None


def _parse_max_age(value):
    if value in (None, ''):
        return None
    try:
        max_age = int(value)
    except (TypeError, ValueError):
        raise ValueError('max_age must be an integer number of milliseconds')
    if max_age < 0:
        raise ValueError('max_age must not be negative')
    return max_age


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([AllowAny])
def state_detail(request, key):
    """Read, write or remove one persisted state entry"""
    store, error = _store_or_error(request)
    if error:
        return error

    if request.method == 'GET':
        try:
            max_age = _parse_max_age(request.query_params.get('max_age'))
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'key': key, 'data': store.load(key, max_age)})
    elif request.method == 'PUT':
        if 'data' not in request.data:
            return Response({'error': 'data is required'}, status=status.HTTP_400_BAD_REQUEST)
        if key == StateKeys.AUTH_FORM:
            store.save_auth_form(request.data['data'])
        else:
            store.save(key, request.data['data'])
        return Response({'key': key, 'data': store.load(key)})
    else:  # DELETE
        store.remove(key)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'DELETE'])
@permission_classes([AllowAny])
def state_list_clear(request):
    """List persisted keys or clear every namespaced entry"""
    store, error = _store_or_error(request)
    if error:
        return error

    if request.method == 'GET':
        return Response({'keys': sorted(store.keys())})
    store.clear()
    return Response(status=status.HTTP_204_NO_CONTENT)


def _exclude_fields(value):
    if isinstance(value, str):
        return [name.strip() for name in value.split(',') if name.strip()]
    return list(value or [])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([AllowAny])
def form_autosave(request, form_id):
    """
    Saved autosave snapshot for a form id.

    GET ?current=<json object> merges the snapshot into the empty fields of
    the form the client currently holds and returns the merged form.
    """
    store, error = _store_or_error(request)
    if error:
        return error

    if request.method == 'GET':
        current = request.query_params.get('current')
        if current is None:
            return Response({'form_id': form_id, 'data': store.load_form_autosave(form_id)})
        try:
            form_data = json.loads(current)
        except ValueError:
            form_data = None
        if not isinstance(form_data, dict):
            return Response({'error': 'current must be a JSON object of field values'}, status=status.HTTP_400_BAD_REQUEST)
        autosave = FormAutosave(
            store, form_id, form_data,
            exclude_fields=_exclude_fields(request.query_params.get('exclude_fields')),
        )
        return Response({'form_id': form_id, 'data': autosave.restore()})
    elif request.method == 'PUT':
        fields = request.data.get('data')
        if not isinstance(fields, dict):
            return Response({'error': 'data must be an object of field values'}, status=status.HTTP_400_BAD_REQUEST)
        autosave = FormAutosave(
            store, form_id, fields,
            exclude_fields=_exclude_fields(request.data.get('exclude_fields')),
        )
        autosave.save_now()
        return Response({'form_id': form_id, 'data': store.load_form_autosave(form_id)})
    else:  # DELETE
        FormAutosave(store, form_id).clear_saved_data()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'PUT'])
@permission_classes([AllowAny])
def last_route(request):
    """Remember the last visited route; GET ?current= returns where to go back to"""
    store, error = _store_or_error(request)
    if error:
        return error

    if request.method == 'GET':
        current = request.query_params.get('current')
        if current is not None:
            return Response({'route': store.restore_last_route(current)})
        return Response({'route': store.load_last_route()})
    saved = store.save_last_route(request.data)
    return Response({'saved': saved, 'route': store.load_last_route()})


@api_view(['GET', 'PUT'])
@permission_classes([AllowAny])
def sort_filter_state(request, category_slug):
    """Sort/filter preference for one category page"""
    store, error = _store_or_error(request)
    if error:
        return error

    if request.method == 'GET':
        return Response({'category': category_slug, 'state': store.load_sort_filter_state(category_slug)})
    store.save_sort_filter_state(category_slug, request.data)
    return Response({'category': category_slug, 'state': store.load_sort_filter_state(category_slug)})
