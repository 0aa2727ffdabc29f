"""
Enrollment signals.

progress_completed: sent with `enrollment=<Enrollment>` when an enrollment's
progress reaches 100. The certificate awarder is connected to it in
`elearning.certificates.signals`.
"""

from django.dispatch import Signal

progress_completed = Signal()
