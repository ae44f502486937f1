from prometheus_client import Counter, Histogram

JOB_DURATION = Histogram(
    "badcompany_job_duration_seconds",
    "Duration of background jobs",
    ["job_name"],
)
JOB_SUCCESS = Counter(
    "badcompany_job_success_total",
    "Total successful job executions",
    ["job_name"],
)
JOB_FAILURE = Counter(
    "badcompany_job_failure_total",
    "Total failed job executions",
    ["job_name"],
)
NEWSLETTER_EMAILS_SENT = Counter(
    "badcompany_newsletter_emails_sent_total",
    "Campaign emails accepted by the mail server",
)
NEWSLETTER_EMAILS_FAILED = Counter(
    "badcompany_newsletter_emails_failed_total",
    "Campaign emails that could not be sent or recorded",
)
TRACKING_EVENTS = Counter(
    "badcompany_newsletter_tracking_events_total",
    "Tracking endpoint hits by event type",
    ["event"],
)
RETRY_ATTEMPTS = Counter(
    "badcompany_retry_attempts_total",
    "Failed attempts that were retried",
    ["operation"],
)
FORM_SUBMISSIONS = Counter(
    "badcompany_form_submissions_total",
    "Contact and budget request forms by outcome",
    ["form", "outcome"],
)
