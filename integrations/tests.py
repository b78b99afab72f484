import json
import os
import tempfile
from decimal import Decimal
from io import StringIO
from unittest import mock

import requests
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase

from rentals.exceptions import StaleWrite
from rentals.models import Rental, Vehicle
from rentals.services.payments import record_payment
from rentals.tests.helpers import make_owner, make_rental, make_vehicle

from .models import InboundChangeNotification
from .services import RemoteMediaStore, apply_change_notification


def _response(payload, error=None):
    resp = mock.Mock()
    resp.json.return_value = payload
    resp.raise_for_status.side_effect = error
    return resp


class RemoteMediaStoreTests(SimpleTestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.store = RemoteMediaStore('https://media.example.com/api/', session=self.session, max_retries=3, timeout=5)

    def test_has_media(self):
        self.session.get.return_value = _response([{'file_url': 'https://media.example.com/1.mp4'}])
        self.assertTrue(self.store.has_media(7, 'opening'))
        self.session.get.assert_called_once_with(
            'https://media.example.com/api/rentals/7/media', params={'phase': 'opening'}, timeout=5
        )

        self.session.get.return_value = _response({'items': []})
        self.assertFalse(self.store.has_media(7, 'closing'))

    @mock.patch('time.sleep')
    def test_upload_retries_network_errors(self, sleep):
        self.session.post.side_effect = [
            requests.ConnectionError('reset'),
            requests.Timeout('slow'),
            _response({'file_url': 'https://media.example.com/7/opening.mp4'}),
        ]
        url = self.store.upload(7, 'opening', 'opening.mp4', b'data')
        self.assertEqual(url, 'https://media.example.com/7/opening.mp4')
        self.assertEqual(self.session.post.call_count, 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [2, 4])

    @mock.patch('time.sleep')
    def test_retried_record_reuses_idempotency_key(self, sleep):
        self.session.post.side_effect = [
            requests.Timeout('slow'),
            _response({'file_url': 'https://media.example.com/x.mp4'}),
            _response({'file_url': 'https://media.example.com/y.mp4'}),
        ]
        self.store.record_media(7, 'opening', 'https://media.example.com/x.mp4')
        self.store.record_media(7, 'closing', 'https://media.example.com/y.mp4')

        keys = [c.kwargs['headers']['Idempotency-Key'] for c in self.session.post.call_args_list]
        self.assertEqual(keys[0], keys[1])
        self.assertNotEqual(keys[1], keys[2])

    @mock.patch('time.sleep')
    def test_gives_up_after_max_retries(self, sleep):
        self.session.post.side_effect = requests.ConnectionError('down')
        with self.assertRaises(requests.ConnectionError):
            self.store.record_media(7, 'opening', 'https://media.example.com/x.mp4')
        self.assertEqual(self.session.post.call_count, 3)
        self.assertEqual(sleep.call_count, 2)

    @mock.patch('time.sleep')
    def test_http_errors_are_not_retried(self, sleep):
        self.session.post.return_value = _response({}, error=requests.HTTPError('413 quota exceeded'))
        with self.assertRaises(requests.HTTPError):
            self.store.upload(7, 'closing', 'closing.mp4', b'data')
        self.assertEqual(self.session.post.call_count, 1)
        sleep.assert_not_called()


class ChangeNotificationTests(TestCase):
    def setUp(self):
        self.owner, self.company = make_owner()
        self.vehicle = make_vehicle(self.company)
        self.rental = make_rental(self.company, self.vehicle)

    def _message(self, mid='msg-1', **record):
        record.setdefault('id', self.rental.pk)
        return {'id': mid, 'type': 'rental', 'record': record, 'received': '2026-03-01T12:00:00Z'}

    def test_remote_record_wins_and_bumps_version(self):
        version = Rental.objects.get(pk=self.rental.pk).version
        self.assertTrue(apply_change_notification(self._message(total_amount='500.00', customer_name='Jane')))

        stored = Rental.objects.get(pk=self.rental.pk)
        self.assertEqual(stored.total_amount, Decimal('500'))
        self.assertEqual(stored.customer_name, 'Jane')
        self.assertEqual(stored.version, version + 1)

        note = InboundChangeNotification.objects.get(message_id='msg-1')
        self.assertTrue(note.applied)
        self.assertIsNotNone(note.received_at)

    def test_in_flight_commit_fails_after_remote_change(self):
        apply_change_notification(self._message(customer_name='Jane'))
        with self.assertRaises(StaleWrite):
            record_payment(self.rental, 100, self.owner)
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).deposit_amount, Decimal('0'))

    def test_same_message_applied_once(self):
        apply_change_notification(self._message(customer_name='Jane'))
        Rental.objects.filter(pk=self.rental.pk).update(customer_name='Local')
        self.assertFalse(apply_change_notification(self._message(customer_name='Jane')))
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).customer_name, 'Local')

    def test_remote_version_is_ignored(self):
        version = Rental.objects.get(pk=self.rental.pk).version
        apply_change_notification(self._message(version=99, customer_name='Jane'))
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).version, version + 1)

    def test_vehicle_status(self):
        apply_change_notification({
            'id': 'veh-1', 'type': 'vehicle',
            'record': {'id': self.vehicle.pk, 'status': 'maintenance', 'name': 'ignored'},
        })
        vehicle = Vehicle.objects.get(pk=self.vehicle.pk)
        self.assertEqual(vehicle.status, Vehicle.Status.MAINTENANCE)
        self.assertNotEqual(vehicle.name, 'ignored')

    def test_unknown_record_is_logged_not_applied(self):
        self.assertTrue(apply_change_notification(self._message(mid='msg-x', id=99999, customer_name='Ghost')))
        self.assertFalse(InboundChangeNotification.objects.get(message_id='msg-x').applied)

    def test_invalid_messages(self):
        with self.assertRaises(ValueError):
            apply_change_notification({'type': 'rental', 'record': {}})
        with self.assertRaises(ValueError):
            apply_change_notification({'id': 'm', 'type': 'invoice', 'record': {}})

    def test_command_reads_json_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, '001.json'), 'w', encoding='utf-8') as f:
                json.dump({'type': 'rental', 'record': {'id': self.rental.pk, 'customer_phone': '+212611111111'}}, f)
            with open(os.path.join(tmp, 'notes.txt'), 'w', encoding='utf-8') as f:
                f.write('not a notification')

            out = StringIO()
            call_command('apply_change_notifications', dir=tmp, stdout=out)
            self.assertIn('Applied: 1, skipped: 0', out.getvalue())

            out = StringIO()
            call_command('apply_change_notifications', dir=tmp, stdout=out)
            self.assertIn('Applied: 0, skipped: 1', out.getvalue())

        self.assertEqual(Rental.objects.get(pk=self.rental.pk).customer_phone, '+212611111111')
