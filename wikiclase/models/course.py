from wikiclase.extensions import db
from wikiclase.models.enums import CourseStatus
from wikiclase.utils.dates import utcnow


class Course(db.Model):
    __tablename__ = "course"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    short_description = db.Column(db.String(500), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    image_url = db.Column(db.String(500), nullable=True)
    status = db.Column(db.Enum(CourseStatus, name="course_status"), nullable=False, default=CourseStatus.DRAFT)
    instructor_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    published_at = db.Column(db.DateTime, nullable=True)

    instructor = db.relationship("User", back_populates="courses_created")
    lessons = db.relationship(
        "Lesson",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by=lambda: (Lesson.order, Lesson.id),
    )
    enrollments = db.relationship("Enrollment", back_populates="course")

    @property
    def total_lessons(self):
        return len(self.lessons)

    @property
    def is_free(self):
        return not self.price or self.price <= 0

    def to_dict(self, include_lessons=False):
        data = {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "short_description": self.short_description,
            "price": float(self.price or 0),
            "currency": self.currency,
            "image_url": self.image_url,
            "status": self.status.value,
            "instructor": {
                "id": self.instructor.id,
                "full_name": self.instructor.full_name,
            } if self.instructor else None,
            "total_lessons": self.total_lessons,
            "total_enrollments": len(self.enrollments),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }
        if include_lessons:
            data["lessons"] = [lesson.to_dict() for lesson in self.lessons]
        return data


class Lesson(db.Model):
    __tablename__ = "lesson"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=True)
    video_url = db.Column(db.String(500), nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # minutes
    order = db.Column(db.Integer, nullable=False, default=0)
    is_preview = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    course = db.relationship("Course", back_populates="lessons")
    progress = db.relationship("LessonProgress", back_populates="lesson", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "content": self.content,
            "video_url": self.video_url,
            "duration": self.duration,
            "order": self.order,
            "is_preview": self.is_preview,
        }
