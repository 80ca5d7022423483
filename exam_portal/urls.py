from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Authentication, profile & user management ---
    path('api/', include('users.urls')),

    # --- Question bank & exam definitions ---
    path('api/', include('exams.urls')),

    # --- Exam taking & evaluation ---
    path('api/exam-attempts/', include('assessments.urls')),

    # --- Notifications & audit log ---
    path('api/', include('notifications.urls')),
    path('api/', include('cores.urls')),
]
