#!/usr/bin/env python
"""
Test runner script for the full API test suite
Usage: python run_tests.py
"""
import os
import sys
import django
from django.conf import settings
from django.test.utils import get_runner

if __name__ == "__main__":
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'buildledger.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    failures = test_runner.run_tests([
        'buildledger.core',
        'buildledger.catalog',
        'buildledger.parties',
        'buildledger.fleet',
        'buildledger.payroll',
        'buildledger.receipts',
        'buildledger.inventory',
        'buildledger.payments',
        'buildledger.invoices',
        'buildledger.debris',
        'buildledger.cash',
        'buildledger.reports',
    ])
    sys.exit(bool(failures))
