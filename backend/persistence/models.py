from django.db import models


class PersistedState(models.Model):
    """Client-side state snapshot stored per browser profile"""
    owner_key = models.CharField(max_length=100, db_index=True, help_text='user:<id> or client:<X-Client-Id>')
    key = models.CharField(max_length=200)
    data = models.TextField(help_text='JSON encoded {"data": ..., "timestamp": ms}')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.owner_key}/{self.key}"

    class Meta:
        db_table = 'persisted_states'
        constraints = [
            models.UniqueConstraint(fields=['owner_key', 'key'], name='uniq_persisted_state_owner_key'),
        ]
