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
from unittest import mock

from pyvsphere import cache
from pyvsphere import driver
from pyvsphere import error_util
from pyvsphere import vim_util
from tests import fake

MOR = vim_util.ManagedObjectReference


class DriverTestCase(unittest.TestCase):

    def setUp(self):
        self.vim = fake.FakeVim()
        self.conn = self._driver()

    def _driver(self, **kwargs):
        kwargs.setdefault('task_poll_interval', 0.01)
        with mock.patch.object(driver.VMwareAPISession, '_get_vim_object',
                               return_value=self.vim):
            conn = driver.VMwareVSphereDriver('vcenter', fake.USER,
                                              fake.PASSWORD, **kwargs)
        self.addCleanup(conn.close)
        return conn

    def _last_request(self, method):
        calls = self.vim.calls_of(method)
        self.assertTrue(calls, "%s wasn't called" % method)
        return calls[-1]


class InventoryTestCase(DriverTestCase):

    def test_get_properties_keep_types(self):
        bag = self.conn.get_properties(
            moid='vm-1', properties=['config.hardware.device'],
            keep_types=True)
        devices = bag[MOR('VirtualMachine', 'vm-1')]['config.hardware.device']
        self.assertEqual(['VirtualCdrom', 'VirtualDisk'],
                         [device['_type'] for device in devices])
        self.assertEqual('VirtualDiskFlatVer2BackingInfo',
                         devices[1]['backing']['_type'])
        bag = self.conn.get_properties(
            moid='vm-1', properties=['config.hardware.device'])
        devices = bag[MOR('VirtualMachine', 'vm-1')]['config.hardware.device']
        self.assertNotIn('_type', devices[0])

    def test_list(self):
        self.assertEqual(['template1', 'test_vm1', 'test_vm2', 'vapp_vm'],
                         self.conn.list())
        self.assertEqual(['esx1', 'esx2'], self.conn.list('HostSystem'))

    def test_get_moid(self):
        self.assertEqual(MOR('VirtualMachine', 'vm-2'),
                         self.conn.get_moid('test_vm2'))
        self.assertEqual(MOR('Datastore', 'datastore-2'),
                         self.conn.get_moid('datastore2', 'Datastore'))

    def test_get_moid_not_found(self):
        self.assertRaises(error_util.ManagedObjectNotFoundError,
                          self.conn.get_moid, 'no_such_vm')

    def test_get_moid_without_name(self):
        self.assertRaises(error_util.ValidationError, self.conn.get_moid,
                          None)
        self.assertEqual([], self.vim.calls_of('RetrievePropertiesEx'))

    def test_get_moid_is_cached(self):
        self.conn.get_moid('test_vm1')
        self.conn.get_moid('test_vm1')
        self.assertEqual(1, len(self.vim.calls_of('RetrievePropertiesEx')))
        self.conn.clear_cache()
        self.conn.get_moid('test_vm1')
        self.assertEqual(2, len(self.vim.calls_of('RetrievePropertiesEx')))

    def test_cache_disabled(self):
        conn = self._driver(cache_disabled=True)
        conn.get_moid('test_vm1')
        conn.get_moid('test_vm1')
        self.assertEqual(2, len(self.vim.calls_of('RetrievePropertiesEx')))

    def test_injected_cache(self):
        moid_cache = cache.MoidCache()
        moid_cache.set('VirtualMachine', 'test_vm1',
                       MOR('VirtualMachine', 'vm-1'))
        conn = self._driver(moid_cache=moid_cache)
        self.assertEqual(MOR('VirtualMachine', 'vm-1'),
                         conn.get_moid('test_vm1'))
        self.assertEqual([], self.vim.calls_of('RetrievePropertiesEx'))

    def test_delete(self):
        self.conn.get_moid('test_vm2')
        self.assertTrue(self.conn.delete('test_vm2'))
        mo_type, moid, _, _ = self._last_request('Destroy_Task')
        self.assertEqual(('VirtualMachine', 'vm-2'), (mo_type, moid))
        self.assertIsNone(self.conn._cache.get('VirtualMachine',
                                               'test_vm2'))

    def test_stale_cached_moid_is_forgotten(self):
        self.conn.get_moid('test_vm1')
        self.vim.inject_fault('PowerOnVM_Task', 'ManagedObjectNotFound',
                              'The object has already been deleted')
        self.assertRaises(error_util.VimFaultException, self.conn.poweron_vm,
                          'test_vm1')
        self.assertIsNone(self.conn._cache.get('VirtualMachine',
                                               'test_vm1'))

    def test_other_faults_keep_cached_moid(self):
        self.conn.get_moid('test_vm1')
        self.vim.inject_fault('ShutdownGuest', 'ToolsUnavailable',
                              'VMware Tools is not running')
        self.assertRaises(error_util.VimFaultException, self.conn.shutdown_vm,
                          'test_vm1')
        self.assertEqual(MOR('VirtualMachine', 'vm-1'),
                         self.conn._cache.get('VirtualMachine', 'test_vm1'))

    def test_vm_properties(self):
        self.assertEqual('[datastore1] test_vm1/test_vm1.vmx',
                         self.conn.get_vm_path('test_vm1'))
        self.assertEqual('poweredOn', self.conn.get_vm_powerstate('test_vm1'))
        self.assertTrue(self.conn.tools_is_running('test_vm1'))
        self.assertFalse(self.conn.tools_is_running('test_vm2'))

    def test_vm_property_not_found(self):
        try:
            self.conn.get_vm_path('no_such_vm')
        except error_util.ManagedObjectNotFoundError as excep:
            self.assertEqual('no_such_vm', excep.name)
        else:
            self.fail("ManagedObjectNotFoundError wasn't raised")

    def test_datastore_url(self):
        self.assertEqual('ds:///vmfs/volumes/4f1e-ds1/',
                         self.conn.get_datastore_url('datastore1'))

    def test_request(self):
        self.assertEqual(MOR('Task', 'task-1'), self.conn.request(
            'VirtualMachine', 'vm-1', 'PowerOnVM_Task'))
        self.assertIsNone(self.conn.request('VirtualMachine', 'vm-1',
                                            'ShutdownGuest'))


class PowerTestCase(DriverTestCase):

    def test_power_tasks(self):
        for method, task in (('poweron_vm', 'PowerOnVM_Task'),
                             ('poweroff_vm', 'PowerOffVM_Task')):
            self.assertTrue(getattr(self.conn, method)('test_vm1'))
            mo_type, moid, _, _ = self._last_request(task)
            self.assertEqual(('VirtualMachine', 'vm-1'), (mo_type, moid))

    def test_guest_requests(self):
        for method, request in (('shutdown_vm', 'ShutdownGuest'),
                                ('reboot_vm', 'RebootGuest'),
                                ('mount_tools_installer',
                                 'MountToolsInstaller')):
            self.assertTrue(getattr(self.conn, method)('test_vm2'))
            self.assertEqual('vm-2', self._last_request(request)[1])
        self.assertEqual({}, self.vim.tasks)

    def test_power_task_error(self):
        self.vim.script_task('PowerOnVM_Task', ['error'], error={
            'localizedMessage': 'Insufficient resources'})
        self.assertRaises(error_util.TaskError, self.conn.poweron_vm,
                          'test_vm1')


class SnapshotTestCase(DriverTestCase):

    def test_list_snapshots(self):
        self.assertEqual({'snapshot-1': 'base', 'snapshot-2': 'child'},
                         self.conn.list_snapshots('test_vm1'))
        self.assertEqual({}, self.conn.list_snapshots('test_vm2'))

    def test_create_snapshot(self):
        self.vim.script_task('CreateSnapshot_Task', ['success'],
                             result=MOR('VirtualMachineSnapshot',
                                        'snapshot-3'))
        self.assertEqual(MOR('VirtualMachineSnapshot', 'snapshot-3'),
                         self.conn.create_snapshot('test_vm1', name='daily',
                                                   memory=True))
        request = self._last_request('CreateSnapshot_Task')[3]
        self.assertEqual('daily', request.getChild('name').getText())
        self.assertEqual('', request.getChild('description').getText(''))
        self.assertEqual('true', request.getChild('memory').getText())
        self.assertEqual('false', request.getChild('quiesce').getText())

    def test_create_snapshot_without_name(self):
        self.assertRaises(error_util.ValidationError,
                          self.conn.create_snapshot, 'test_vm1')
        self.assertEqual([], self.vim.calls_of('CreateSnapshot_Task'))

    def test_revert_and_remove(self):
        self.assertTrue(self.conn.revert_to_current_snapshot('test_vm1'))
        self.assertEqual('vm-1', self._last_request(
            'RevertToCurrentSnapshot_Task')[1])
        self.assertTrue(self.conn.revert_to_snapshot('snapshot-1'))
        self.assertEqual(('VirtualMachineSnapshot', 'snapshot-1'),
                         self._last_request('RevertToSnapshot_Task')[:2])
        self.assertTrue(self.conn.remove_snapshot('snapshot-2',
                                                  consolidate=False))
        request = self._last_request('RemoveSnapshot_Task')[3]
        self.assertEqual('true', request.getChild('removeChildren').getText())
        self.assertEqual('false', request.getChild('consolidate').getText())


class HardwareTestCase(DriverTestCase):

    def _device(self, method):
        spec = self._last_request(method)[3].getChild('spec')
        change = spec.getChild('deviceChange')
        return change, change.getChild('device')

    def test_reconfigure(self):
        self.conn.reconfigure_vm('test_vm1', memoryMB=2048, numCPUs=2)
        spec = self._last_request('ReconfigVM_Task')[3].getChild('spec')
        self.assertEqual(['numCPUs', 'memoryMB'],
                         [child.name for child in spec.getChildren()])

    def test_cdrom(self):
        self.conn.connect_cdrom('test_vm1', '[datastore1] iso/linux.iso')
        change, device = self._device('ReconfigVM_Task')
        self.assertEqual('edit', change.getChild('operation').getText())
        self.assertEqual('3002', device.getChild('key').getText())
        self.assertEqual('[datastore1] iso/linux.iso', device.getChild(
            'backing').getChild('fileName').getText())
        self.assertEqual('true', device.getChild('connectable').getChild(
            'connected').getText())
        self.conn.disconnect_cdrom('test_vm1')
        change, device = self._device('ReconfigVM_Task')
        self.assertEqual('VirtualCdromRemoteAtapiBackingInfo',
                         vim_util.xsi_type(device.getChild('backing')))

    def test_floppy(self):
        self.conn.connect_floppy('test_vm1', '[datastore1] fd/boot.flp')
        change, device = self._device('ReconfigVM_Task')
        self.assertEqual('8000', device.getChild('key').getText())
        self.assertEqual('400', device.getChild('controllerKey').getText())
        self.conn.disconnect_floppy('test_vm1')
        change, device = self._device('ReconfigVM_Task')
        self.assertEqual('false', device.getChild('connectable').getChild(
            'connected').getText())

    def test_add_disk(self):
        self.conn.add_disk('test_vm1', size=1048576)
        change, device = self._device('ReconfigVM_Task')
        self.assertEqual('create', change.getChild('fileOperation').getText())
        self.assertEqual('-100', device.getChild('key').getText())
        self.assertEqual('1048576', device.getChild('capacityInKB').getText())
        self.assertEqual('true', device.getChild('backing').getChild(
            'thinProvisioned').getText())

    def test_attach_existing_disk(self):
        self.conn.create_disk('test_vm1', file='[datastore1] d/d.vmdk',
                              thin=False, unit=2)
        change, device = self._device('ReconfigVM_Task')
        self.assertIsNone(change.getChild('fileOperation'))
        self.assertEqual('2', device.getChild('unitNumber').getText())

    def test_add_disk_validation(self):
        self.assertRaises(error_util.ValidationError, self.conn.add_disk,
                          'test_vm1')
        self.assertRaises(error_util.ValidationError, self.conn.add_disk,
                          'test_vm1', size=1, mode='bogus')

    def test_remove_disk(self):
        self.conn.remove_disk('test_vm1', 2000)
        change, device = self._device('ReconfigVM_Task')
        self.assertEqual('remove', change.getChild('operation').getText())
        self.assertEqual('destroy', change.getChild('fileOperation').getText())
        self.assertEqual('Hard disk 1', device.getChild(
            'deviceInfo').getChild('label').getText())
        self.assertEqual('6000C29a', device.getChild('backing').getChild(
            'uuid').getText())
        self.assertEqual('normal', device.getChild(
            'storageIOAllocation').getChild('shares').getChild(
            'level').getText())

    def test_remove_unknown_disk(self):
        self.assertRaises(error_util.VimException, self.conn.remove_disk,
                          'test_vm1', 2001)
        self.assertEqual([], self.vim.calls_of('ReconfigVM_Task'))


class StorageTestCase(DriverTestCase):

    def test_add_nas_storage(self):
        self.assertEqual(MOR('Datastore', 'datastore-10'),
                         self.conn.add_nas_storage(
                             host_name='esx1', remote_host='nas',
                             remote_path='/export', local_path='nfs1'))
        mo_type, moid, _, request = self._last_request('CreateNasDatastore')
        self.assertEqual(('HostDatastoreSystem', 'datastoreSystem-1'),
                         (mo_type, moid))
        spec = request.getChild('spec')
        self.assertEqual('readWrite', spec.getChild('accessMode').getText())
        self.assertEqual('nfs', spec.getChild('type').getText())

    def test_add_nas_storage_validation(self):
        self.assertRaises(error_util.ValidationError,
                          self.conn.add_nas_storage, host_name='esx1')

    def test_find_files(self):
        self.vim.script_task('SearchDatastoreSubFolders_Task', ['success'],
                             result=[{
                                 '_type': 'HostDatastoreBrowserSearchResults',
                                 'folderPath': '[datastore1] test_vm1/',
                                 'file': ({'_type': 'FileInfo',
                                           'path': 'test_vm1.vmx',
                                           'fileSize': 2480},
                                          {'_type': 'FileInfo',
                                           'path': 'test_vm1.vmdk',
                                           'fileSize': 512}),
                             }, {
                                 '_type': 'HostDatastoreBrowserSearchResults',
                                 'folderPath': '[datastore1] template1/',
                                 'file': {'_type': 'FileInfo',
                                          'path': 'template1.vmx',
                                          'fileSize': 1024},
                             }])
        self.assertEqual(['[datastore1] test_vm1/test_vm1.vmx',
                          '[datastore1] test_vm1/test_vm1.vmdk',
                          '[datastore1] template1/template1.vmx'],
                         self.conn.find_files(datastore='datastore1',
                                              pattern='*.vm*'))
        mo_type, moid, _, request = self._last_request(
            'SearchDatastoreSubFolders_Task')
        self.assertEqual(('HostDatastoreBrowser', 'datastoreBrowser-1'),
                         (mo_type, moid))
        self.assertEqual('[datastore1]',
                         request.getChild('datastorePath').getText())
        search = request.getChild('searchSpec')
        self.assertEqual('*.vm*', search.getChild('matchPattern').getText())
        self.assertEqual('true',
                         search.getChild('searchCaseInsensitive').getText())

    def test_find_files_with_info(self):
        self.vim.script_task('SearchDatastoreSubFolders_Task', ['success'],
                             result=[{
                                 '_type': 'HostDatastoreBrowserSearchResults',
                                 'folderPath': '[datastore1] test_vm1/',
                                 'file': {'_type': 'FileInfo',
                                          'path': 'test_vm1.vmx',
                                          'fileSize': 2480},
                             }])
        self.assertEqual(
            {'[datastore1] test_vm1/test_vm1.vmx': {'fileSize': '2480'}},
            self.conn.find_files(datastore='datastore1', pattern='*.vmx',
                                 path='test_vm1', with_info=True))
        request = self._last_request('SearchDatastoreSubFolders_Task')[3]
        self.assertEqual('[datastore1] test_vm1',
                         request.getChild('datastorePath').getText())


class InventoryChangeTestCase(DriverTestCase):

    def test_register_vm(self):
        self.vim.script_task('RegisterVM_Task', ['success'],
                             result=MOR('VirtualMachine', 'vm-7'))
        self.assertEqual(MOR('VirtualMachine', 'vm-7'), self.conn.register_vm(
            'restored', datacenter='dc1', cluster='cluster1', host='esx1',
            path='[datastore1] restored/restored.vmx'))
        mo_type, moid, _, request = self._last_request('RegisterVM_Task')
        self.assertEqual(('Folder', 'group-v1'), (mo_type, moid))
        self.assertEqual('resgroup-1', request.getChild('pool').getText())
        self.assertEqual('ResourcePool',
                         vim_util.ref_type(request.getChild('pool')))
        self.assertEqual('host-1', request.getChild('host').getText())
        self.assertEqual('false', request.getChild('asTemplate').getText())

    def test_register_vm_standalone_host(self):
        self.conn.register_vm('restored', datacenter='dc1', host='esx2',
                              path='[datastore2] restored/restored.vmx')
        request = self._last_request('RegisterVM_Task')[3]
        self.assertEqual('resgroup-2', request.getChild('pool').getText())

    def test_register_vm_validation(self):
        self.assertRaises(error_util.ValidationError, self.conn.register_vm,
                          'restored', datacenter='dc1', host='esx1')

    def test_unregister_vm(self):
        self.assertTrue(self.conn.unregister_vm('test_vm2'))
        self.assertEqual('vm-2', self._last_request('UnregisterVM')[1])

    def test_clone(self):
        self.vim.script_task('CloneVM_Task', ['running', 'success'],
                             result=MOR('VirtualMachine', 'vm-8'))
        self.assertEqual(MOR('VirtualMachine', 'vm-8'),
                         self.conn.clone('test_vm1', 'copy'))
        mo_type, moid, _, request = self._last_request('CloneVM_Task')
        self.assertEqual('vm-1', moid)
        self.assertEqual('group-v1', request.getChild('folder').getText())
        self.assertEqual('copy', request.getChild('name').getText())
        location = request.getChild('spec').getChild('location')
        self.assertEqual('datastore-1',
                         location.getChild('datastore').getText())

    def test_clone_from_vapp(self):
        self.conn.clone('vapp_vm', 'copy')
        request = self._last_request('CloneVM_Task')[3]
        self.assertEqual('group-v1', request.getChild('folder').getText())

    def test_clone_needs_datastore(self):
        self.assertRaises(error_util.ValidationError, self.conn.clone,
                          'test_vm2', 'copy')
        self.conn.clone('test_vm2', 'copy', datastore='datastore2',
                        folder='group-v2')
        request = self._last_request('CloneVM_Task')[3]
        self.assertEqual('group-v2', request.getChild('folder').getText())
        self.assertEqual('datastore-2', request.getChild('spec').getChild(
            'location').getChild('datastore').getText())

    def test_linked_clone(self):
        self.conn.linked_clone('test_vm1', 'linked')
        spec = self._last_request('CloneVM_Task')[3].getChild('spec')
        self.assertEqual('snapshot-2', spec.getChild('snapshot').getText())
        self.assertEqual('createNewChildDiskBacking', spec.getChild(
            'location').getChild('diskMoveType').getText())

    def test_linked_clone_without_snapshot(self):
        self.assertRaises(error_util.VimException, self.conn.linked_clone,
                          'test_vm2', 'linked')


class GuestTestCase(DriverTestCase):

    def test_run_in_vm(self):
        self.assertEqual(4321, self.conn.run_in_vm(
            'test_vm1', 'root', 'pa$$', '/bin/ls', args='-l /tmp',
            env=['LANG=C']))
        mo_type, moid, _, request = self._last_request('StartProgramInGuest')
        self.assertEqual(('GuestProcessManager',
                          'guestOperationsProcessManager'), (mo_type, moid))
        self.assertEqual('NamePasswordAuthentication',
                         vim_util.xsi_type(request.getChild('auth')))
        spec = request.getChild('spec')
        self.assertEqual('-l /tmp', spec.getChild('arguments').getText())
        self.assertEqual('LANG=C', spec.getChild('envVariables').getText())
        self.assertIsNone(spec.getChild('workingDirectory'))

    def test_list_vm_processes(self):
        processes = self.conn.list_vm_processes('test_vm1', 'root', 'pa$$')
        self.assertEqual([1, 4321], sorted(processes))
        self.assertEqual('bash', processes[4321]['name'])
        processes = self.conn.list_vm_processes('test_vm1', 'root', 'pa$$',
                                                4321)
        self.assertEqual([4321], list(processes))


class NetworkTestCase(DriverTestCase):

    def test_add_portgroup(self):
        self.assertTrue(self.conn.add_portgroup('esx1', 'vSwitch0', 'pg100',
                                                100))
        mo_type, moid, _, request = self._last_request('AddPortGroup')
        self.assertEqual(('HostNetworkSystem', 'networkSystem-1'),
                         (mo_type, moid))
        portgrp = request.getChild('portgrp')
        self.assertEqual('100', portgrp.getChild('vlanId').getText())
        self.assertEqual('vSwitch0',
                         portgrp.getChild('vswitchName').getText())

    def test_add_portgroup_bad_vlan(self):
        self.assertRaises(error_util.ValidationError,
                          self.conn.add_portgroup, 'esx1', 'vSwitch0',
                          'pg', 4096)

    def test_portgroup_validation(self):
        self.assertRaises(error_util.ValidationError,
                          self.conn.add_portgroup, 'esx1', None, 'pg')
        self.assertRaises(error_util.ValidationError,
                          self.conn.remove_portgroup, None, 'pg100')
        self.assertEqual([], self.vim.calls_of('AddPortGroup'))

    def test_remove_portgroup(self):
        self.assertTrue(self.conn.remove_portgroup('esx2', 'pg100'))
        mo_type, moid, _, request = self._last_request('RemovePortGroup')
        self.assertEqual('networkSystem-2', moid)
        self.assertEqual('pg100', request.getChild('pgName').getText())
