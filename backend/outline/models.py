from django.db import models


class ProjectTemplate(models.Model):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self) -> str:
        return self.name


class Section(models.Model):
    template = models.ForeignKey(ProjectTemplate, on_delete=models.CASCADE, related_name='sections')
    title = models.CharField(max_length=255)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', '-created_at']

    def __str__(self) -> str:
        return self.title


class TemplateTask(models.Model):
    # Deleting a section removes its tasks; deleting a task leaves its
    # children pointing at a missing id (they are shown as roots).
    section = models.ForeignKey(Section, on_delete=models.CASCADE, related_name='tasks')
    parent_task_id = models.IntegerField(null=True, blank=True, db_index=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    due_date = models.DateField(null=True, blank=True)
    assigned_to = models.CharField(max_length=64, null=True, blank=True)
    estimated_days = models.IntegerField(default=0)
    days_from_meeting = models.IntegerField(default=0)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', 'created_at', 'id']

    def __str__(self) -> str:
        return self.title
