"""
Debounced autosave of arbitrary form field maps, keyed by a form identifier.
"""
import logging
import threading
from functools import partial

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DELAY = 1.0  # seconds


class FormAutosave:
    """
    Keeps a live form-state dict and persists it after a quiet period.

    Saved values are only restored into fields that are currently empty, so
    anything the user has already typed is never overwritten.
    """

    def __init__(self, store, form_id, form_data=None, set_form_data=None,
                 delay=DEFAULT_AUTOSAVE_DELAY, exclude_fields=(), enabled=True,
                 timer_factory=threading.Timer):
        self.store = store
        self.form_id = form_id
        self.form_data = dict(form_data or {})
        self.set_form_data = set_form_data
        self.delay = delay
        self.exclude_fields = set(exclude_fields)
        self.enabled = enabled
        self._timer_factory = timer_factory
        self._timer = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self):
        return self._timer is not None

    def restore(self):
        """Merge the saved snapshot into empty fields; returns the form data"""
        if not self.enabled:
            return self.form_data

        saved = self.store.load_form_autosave(self.form_id)
        if saved:
            updated = dict(self.form_data)
            for key, value in saved.items():
                if key in self.exclude_fields:
                    continue
                if not updated.get(key):
                    updated[key] = value
            self._replace(updated)
        return self.form_data

    def update(self, changes=None, **fields):
        """Apply field changes and restart the debounce window"""
        updated = dict(self.form_data)
        updated.update(changes or {})
        updated.update(fields)
        self._replace(updated)
        if self.enabled:
            self._schedule()
        return self.form_data

    def save_now(self):
        self._cancel()
        if not self.enabled:
            return
        self.store.save_form_autosave(self.form_id, self._collect())

    def clear_saved_data(self):
        self._cancel()
        self.store.clear_form_autosave(self.form_id)

    def close(self, flush=True):
        """Stop autosaving; a pending save is written first when flush is set"""
        with self._lock:
            had_pending = self._timer is not None
        self._cancel()
        if flush and had_pending and self.enabled:
            self._persist()

    def _replace(self, data):
        self.form_data = data
        if self.set_form_data is not None:
            self.set_form_data(dict(data))

    def _collect(self):
        return {
            key: value for key, value in self.form_data.items()
            if key not in self.exclude_fields and value
        }

    def _schedule(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = self._timer_factory(self.delay, partial(self._on_timer, self._generation))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _cancel(self):
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _on_timer(self, generation):
        with self._lock:
            # A newer keystroke or a cancel superseded this timer
            if generation != self._generation:
                return
            self._timer = None
        self._persist()

    def _persist(self):
        data = self._collect()
        if data:
            self.store.save_form_autosave(self.form_id, data)
            logger.debug(f"Autosaved form {self.form_id}: {sorted(data)}")
