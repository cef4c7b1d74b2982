from django.urls import path

from . import views

urlpatterns = [
    path('milestones', views.milestones, name='milestones'),
    path('milestones/reorder', views.milestones_reorder, name='milestones-reorder'),
    path('milestones/<int:pk>', views.milestone_detail, name='milestone-detail'),
    path('milestones/<int:pk>/tasks', views.milestone_tasks, name='milestone-tasks'),
    path('tasks', views.tasks, name='tasks'),
    path('tasks/reorder', views.tasks_reorder, name='tasks-reorder'),
    path('tasks/<int:pk>', views.task_detail, name='task-detail'),
    path('project-templates/<int:pk>/outline', views.template_outline, name='template-outline'),
]
