from typing import Any, Dict, Mapping, Type

from rest_framework import serializers

from . import conf
from .errors import ValidationError


class TaskFieldsSerializer(serializers.Serializer):
    title = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True, default="")
    parent_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    due_date = serializers.DateField(required=False, allow_null=True, default=None)
    assigned_to = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    estimated_days = serializers.IntegerField(required=False, min_value=0, default=0)
    offset_days = serializers.IntegerField(required=False, default=0)

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title may not be blank.")
        limit = conf.title_max_length()
        if len(value) > limit:
            raise serializers.ValidationError(f"Ensure this field has no more than {limit} characters.")
        return value

    def validate_offset_days(self, value: int) -> int:
        low, high = conf.offset_days_range()
        if not low <= value <= high:
            raise serializers.ValidationError(f"Must be between {low} and {high}.")
        return value

    def validate_assigned_to(self, value):
        if value in (None, ""):
            return None
        # either the self sentinel or a team member id
        if value != conf.self_assignee() and not str(value).isdigit():
            raise serializers.ValidationError("Must be a team member id or the self assignee.")
        return str(value)


class TaskInputSerializer(TaskFieldsSerializer):
    section_id = serializers.IntegerField()


class TaskOutputSerializer(TaskInputSerializer):
    id = serializers.IntegerField()
    sort_order = serializers.IntegerField()


class OutlineNodeSerializer(serializers.Serializer):
    task = TaskOutputSerializer()
    children = serializers.SerializerMethodField()

    def get_children(self, obj):
        return OutlineNodeSerializer(obj.children, many=True).data


class SectionInputSerializer(serializers.Serializer):
    template_id = serializers.IntegerField()
    title = serializers.CharField()

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title may not be blank.")
        return value


class SectionOutputSerializer(SectionInputSerializer):
    id = serializers.IntegerField()
    order = serializers.IntegerField()


class SectionOutlineSerializer(serializers.Serializer):
    section = SectionOutputSerializer()
    roots = OutlineNodeSerializer(many=True)


class SectionReorderSerializer(serializers.Serializer):
    template_id = serializers.IntegerField()
    ordered_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)

    def validate_ordered_ids(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError("Section ids must be unique.")
        return value


class TaskOrderEntrySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    sort_order = serializers.IntegerField(min_value=0)


class TaskReorderSerializer(serializers.Serializer):
    task_updates = TaskOrderEntrySerializer(many=True)


def validate_or_raise(serializer_cls: Type[serializers.Serializer], data: Mapping[str, Any],
                      partial: bool = False) -> Dict[str, Any]:
    """Run a serializer over ``data`` and return its validated data.

    Raises ``outline.errors.ValidationError`` carrying the serializer errors.
    """
    serializer = serializer_cls(data=dict(data), partial=partial)
    if not serializer.is_valid():
        fields = ", ".join(sorted(serializer.errors))
        raise ValidationError(f"Invalid input: {fields}.", detail=serializer.errors)
    return dict(serializer.validated_data)
