from .enums import Role, CourseStatus, EnrollmentStatus, PaymentStatus
from .user import User
from .course import Course, Lesson
from .enrollment import Enrollment, LessonProgress
from .payment import Payment
from .certificate import Certificate, CertificateCounter
