"""Role based capability checks.

``policy_for(user)`` picks the policy for the caller's role; every check takes
the exam or attempt being acted on and answers allow (True) or deny (False).
"""


class AccessPolicy:
    def __init__(self, user):
        self.user = user

    def can_start(self, exam):
        return False

    def can_view(self, attempt):
        return False

    def can_evaluate(self, attempt):
        return False

    def can_manage_exam(self, exam):
        return False

    def can_view_exam(self, exam):
        return False


class AnonymousPolicy(AccessPolicy):
    pass


class StudentPolicy(AccessPolicy):
    def can_start(self, exam):
        return exam.admits(self.user)

    def can_view(self, attempt):
        return attempt.student_id == self.user.pk

    def can_view_exam(self, exam):
        return exam.is_published and exam.admits(self.user)


class FacultyPolicy(AccessPolicy):
    def can_view(self, attempt):
        return True

    def can_evaluate(self, attempt):
        return True

    def can_manage_exam(self, exam):
        # Faculty may only change exams they created
        return exam.created_by_id == self.user.pk

    def can_view_exam(self, exam):
        return True


class AdminPolicy(FacultyPolicy):
    def can_manage_exam(self, exam):
        return True


def policy_for(user):
    if user is None or not user.is_authenticated:
        return AnonymousPolicy(user)
    if user.is_portal_admin:
        return AdminPolicy(user)
    if user.is_faculty:
        return FacultyPolicy(user)
    if user.is_student:
        return StudentPolicy(user)
    return AnonymousPolicy(user)
