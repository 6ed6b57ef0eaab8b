# vim: tabstop=4 shiftwidth=4 softtabstop=4

# Copyright (c) 2012 VMware, Inc.
# Copyright (c) 2011 Citrix Systems, Inc.
# Copyright 2011 OpenStack Foundation
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

import unittest

from pyvsphere import cache
from pyvsphere import vim_util

MOR = vim_util.ManagedObjectReference


class MoidCacheTestCase(unittest.TestCase):

    def setUp(self):
        self.cache = cache.MoidCache()
        self.cache.set('VirtualMachine', 'vm1', MOR('VirtualMachine', 'vm-1'))
        self.cache.set('VirtualMachine', 'vm2', MOR('VirtualMachine', 'vm-2'))
        self.cache.set('Datastore', 'ds1', MOR('Datastore', 'datastore-1'))

    def test_get(self):
        self.assertEqual(MOR('VirtualMachine', 'vm-1'),
                         self.cache.get('VirtualMachine', 'vm1'))
        self.assertIsNone(self.cache.get('Datastore', 'vm1'))
        self.assertIsNone(self.cache.get('HostSystem', 'esx1'))
        self.assertEqual(3, len(self.cache))

    def test_remove(self):
        self.cache.remove('VirtualMachine', 'vm1')
        self.cache.remove('VirtualMachine', 'unknown')
        self.cache.remove('HostSystem', 'esx1')
        self.assertIsNone(self.cache.get('VirtualMachine', 'vm1'))
        self.assertEqual(2, len(self.cache))

    def test_clear_type(self):
        self.cache.clear('VirtualMachine')
        self.assertEqual(1, len(self.cache))
        self.assertIsNotNone(self.cache.get('Datastore', 'ds1'))

    def test_clear(self):
        self.cache.clear()
        self.assertEqual(0, len(self.cache))

    def test_disabled(self):
        disabled = cache.MoidCache(disabled=True)
        disabled.set('VirtualMachine', 'vm1', MOR('VirtualMachine', 'vm-1'))
        self.assertIsNone(disabled.get('VirtualMachine', 'vm1'))
        self.assertEqual(0, len(disabled))

    def test_null_cache(self):
        null = cache.NullCache()
        null.set('VirtualMachine', 'vm1', MOR('VirtualMachine', 'vm-1'))
        self.assertIsNone(null.get('VirtualMachine', 'vm1'))
