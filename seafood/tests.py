from unittest.mock import patch

from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase


class HealthCheckTest(APITestCase):
    def test_healthy(self):
        response = self.client.get(reverse('health'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'healthy')
        self.assertEqual(response.data['database'], 'healthy')
        self.assertIn('service', response.data)

    def test_database_down(self):
        with patch('seafood.health.connection') as connection:
            connection.cursor.side_effect = DatabaseError('connection refused')
            response = self.client.get(reverse('health'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'unhealthy')
