from .base import FormController, SubmitResult, pick
from .category import CategoryForm, flatten_categories, parent_options
from .merchant import MerchantForm
from .moderation import CommentEditForm, ReviewEditForm
from .post import PostForm
from .promotion import PromotionBatchForm, PromotionEditForm
from .settings import SecuritySettingsForm
from .user import SuspensionForm, UserForm
