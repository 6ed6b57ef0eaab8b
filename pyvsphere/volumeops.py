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

"""
Management class for Storage-related functions (disks, datastores).
"""

import logging

from pyvsphere import error_util
from pyvsphere import utils
from pyvsphere import vim_util
from pyvsphere import vm_util

LOG = logging.getLogger(__name__)


class VMwareVolumeOps(object):
    """
    Management class for Volume-related tasks
    """

    def __init__(self, session, vmops):
        self._session = session
        self._vmops = vmops

    def add_disk(self, vm_name, size=None, file=None, thin=True,
                 controller=1000, unit=1, mode='persistent'):
        """
        Creates a new virtual disk of `size` KB in the VM, or attaches the
        existing disk `file` given as '[datastore] path/file.vmdk'.

        :param thin: enable thin provisioning
        :param controller: key of the controller
        :param unit: unit number on the controller
        :param mode: disk mode, one of vm_util.DISK_MODES
        """
        utils.check_required(vm_name=vm_name)
        if not file:
            utils.check_required(size=size)
        if mode not in vm_util.DISK_MODES:
            raise error_util.ValidationError("Unknown disk mode '%s'" % mode)
        if file:
            LOG.debug("Add virtual disk '%s' to VM '%s'", file, vm_name)
        else:
            LOG.debug("Create virtual disk in VM '%s' with size %sKB",
                      vm_name, size)
        spec = vm_util.get_vmdk_attach_config_spec(
            size=size, file=file, thin=thin, controller=controller,
            unit=unit, mode=mode)
        self._session.run_task('VirtualMachine',
                               self._vmops.get_moid(vm_name),
                               'ReconfigVM_Task', spec)
        return True

    create_disk = add_disk

    def remove_disk(self, vm_name, key, destroy=True):
        """Removes the virtual disk with the device `key` from the VM.

        The disk files are deleted too unless destroy is false.
        """
        utils.check_required(vm_name=vm_name, key=key)
        LOG.debug("Remove virtual disk #%s from the VM '%s'", key, vm_name)
        vm_ref = self._vmops.get_moid(vm_name)
        devices = self._session.get_property('config.hardware.device',
                                             of='VirtualMachine', moid=vm_ref)
        device = None
        for candidate in vim_util.as_list(devices):
            if isinstance(candidate, dict) and \
                    str(candidate.get('key')) == str(key):
                device = candidate
                break
        if device is None:
            raise error_util.VimException(
                "Can't find virtual device with key = %s" % key)
        spec = vm_util.get_vmdk_detach_config_spec(device, destroy)
        self._session.run_task('VirtualMachine', vm_ref, 'ReconfigVM_Task',
                               spec)
        return True

    def add_nas_storage(self, host_name=None, remote_host=None,
                        remote_path=None, local_path=None, type='nfs',
                        access_mode='readWrite'):
        """Mounts a NAS datastore on the host and returns its ID."""
        utils.check_required(host_name=host_name, remote_host=remote_host,
                             remote_path=remote_path, local_path=local_path)
        LOG.debug("Mount NAS %s %s:%s to %s at %s with %s access mode",
                  type, remote_host, remote_path, local_path, host_name,
                  access_mode)
        datastore_system = self._session.get_property(
            'configManager.datastoreSystem', of='HostSystem',
            where={'name': host_name})
        spec = vm_util.get_nas_spec(remote_host, remote_path, local_path,
                                    access_mode, type)
        response = self._session.request('HostDatastoreSystem',
                                         datastore_system,
                                         'CreateNasDatastore', spec)
        returnval = response.getChild('returnval')
        if returnval is None or vim_util.ref_type(returnval) != 'Datastore':
            raise error_util.ProtocolError(
                "Wrong response from the server: %s" % response.plain())
        return vim_util.to_value(returnval)

    def find_files(self, datastore=None, pattern=None, path=None,
                   case_sensitive=False, with_info=False):
        """
        Searches files on the datastore by pattern.

        Returns a list of paths, or {path: file info} if with_info is set.

        :param path: top level directory to search in
        :param case_sensitive: match the pattern case sensitively
        """
        utils.check_required(datastore=datastore, pattern=pattern)
        datastore_path = utils.build_datastore_path(datastore, path or '')
        browser = self._session.get_property('browser', of='Datastore',
                                             where={'name': datastore})
        spec = vm_util.get_datastore_search_spec(
            datastore_path.strip(), pattern, case_sensitive, with_info)
        result = self._session.run_task('HostDatastoreBrowser', browser,
                                        'SearchDatastoreSubFolders_Task',
                                        spec)
        folders = [folder for folder in vim_util.as_list(result)
                   if isinstance(folder, dict)]
        if with_info:
            info = {}
            for folder in folders:
                for entry in vim_util.as_list(folder.get('file')):
                    entry = dict(entry)
                    file_path = folder.get('folderPath', '') + \
                        entry.pop('path', '')
                    info[file_path] = entry
            return info
        paths = []
        for folder in folders:
            for entry in vim_util.as_list(folder.get('file')):
                if folder.get('folderPath') is not None and 'path' in entry:
                    paths.append(folder['folderPath'] + entry['path'])
        return paths

    def get_datastore_url(self, name):
        """Returns the unique locator of the datastore."""
        utils.check_required(name=name)
        return self._session.get_property('info.url', of='Datastore',
                                          where={'info.name': name})
