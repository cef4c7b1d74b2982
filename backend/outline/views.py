import functools
import logging

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import store
from .domain import SectionOutline, normalize_keys
from .errors import NotFoundError, OutlineError, ReorderConflictError, ValidationError
from .serializers import (
    SectionInputSerializer,
    SectionOutlineSerializer,
    SectionOutputSerializer,
    SectionReorderSerializer,
    TaskFieldsSerializer,
    TaskInputSerializer,
    TaskOutputSerializer,
    TaskReorderSerializer,
    validate_or_raise,
)
from .tree import build_forest

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ReorderConflictError, status.HTTP_409_CONFLICT),
)


def _outline_errors(view):
    """Render OutlineError subclasses as JSON error responses."""
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except OutlineError as e:
            for exc_type, code in _ERROR_STATUS:
                if isinstance(e, exc_type):
                    break
            else:
                code = status.HTTP_500_INTERNAL_SERVER_ERROR
                logger.error("%s %s failed: %s", request.method, request.path, e.message)
            body = {'message': e.message}
            if isinstance(e, ValidationError):
                body['errors'] = e.detail
            return Response(body, status=code)
    return wrapper


def _payload(request) -> dict:
    return normalize_keys(request.data or {})


@api_view(['GET', 'POST'])
@_outline_errors
def milestones(request):
    if request.method == 'GET':
        template_id = request.query_params.get('templateId')
        if not template_id or not template_id.isdigit():
            raise ValidationError('templateId query parameter is required.', detail={'templateId': ['Required.']})
        sections = store.list_sections(int(template_id))
        return Response(SectionOutputSerializer(sections, many=True).data)

    data = validate_or_raise(SectionInputSerializer, _payload(request))
    section = store.create_section(data['template_id'], data['title'])
    return Response(SectionOutputSerializer(section).data, status=status.HTTP_201_CREATED)


@api_view(['PUT'])
@_outline_errors
def milestones_reorder(request):
    data = validate_or_raise(SectionReorderSerializer, _payload(request))
    store.reorder_sections(data['template_id'], data['ordered_ids'])
    return Response({'message': 'Milestones reordered successfully'})


@api_view(['PUT', 'DELETE'])
@_outline_errors
def milestone_detail(request, pk: int):
    if request.method == 'DELETE':
        store.delete_section(pk)
        return Response({'message': 'Milestone deleted successfully'})

    payload = _payload(request)
    current = store.get_section(pk)
    data = validate_or_raise(SectionInputSerializer, {'template_id': current.template_id, **payload})
    section = store.update_section(pk, {'title': data['title']})
    return Response(SectionOutputSerializer(section).data)


@api_view(['GET'])
@_outline_errors
def milestone_tasks(request, pk: int):
    tasks = store.list_tasks_for_section(pk)
    return Response(TaskOutputSerializer(tasks, many=True).data)


@api_view(['POST'])
@_outline_errors
def tasks(request):
    data = validate_or_raise(TaskInputSerializer, _payload(request))
    task = store.create_task(data)
    return Response(TaskOutputSerializer(task).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@_outline_errors
def tasks_reorder(request):
    data = validate_or_raise(TaskReorderSerializer, {
        'task_updates': [normalize_keys(u) for u in _payload(request).get('task_updates') or []],
    })
    store.reorder_tasks(data['task_updates'])
    return Response({'message': 'Tasks reordered successfully'})


@api_view(['PUT', 'DELETE'])
@_outline_errors
def task_detail(request, pk: int):
    if request.method == 'DELETE':
        store.delete_task(pk)
        return Response({'message': 'Task deleted successfully'})

    raw = _payload(request)
    changes = {k: v for k, v in validate_or_raise(TaskFieldsSerializer, raw, partial=True).items() if k in raw}
    task = store.update_task(pk, changes)
    return Response(TaskOutputSerializer(task).data)


@api_view(['GET'])
@_outline_errors
def template_outline(request, pk: int):
    outline = [
        SectionOutline(section=section, roots=tuple(build_forest(store.list_tasks_for_section(section.id))))
        for section in store.list_sections(pk)
    ]
    return Response(SectionOutlineSerializer(outline, many=True).data)
