from badcompany.models.newsletter import (
    NewsletterCampaign,
    NewsletterCampaignRecipient,
    NewsletterLinkClick,
    NewsletterSubscriber,
    NewsletterSubscriberTag,
    NewsletterTag,
    NewsletterUnsubscribe,
)
from badcompany.models.visitor import Visitor
