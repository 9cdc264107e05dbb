from .user import User, UserProfile, UserRole, ProfileStatus
from .job import Company, Job, JobApplication, JobStatus
from .rating import JobRecommendationRating, RatingReason
