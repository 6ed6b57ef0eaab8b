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
Class for VM tasks like power, snapshot, reconfigure, clone etc.
"""

import logging

from pyvsphere import error_util
from pyvsphere import utils
from pyvsphere import vim_util
from pyvsphere import vm_util

LOG = logging.getLogger(__name__)

MOR = vim_util.ManagedObjectReference


class VMwareVMOps(object):
    """Management class for VM-related tasks."""

    def __init__(self, session, moid_cache):
        """Initializer."""
        self._session = session
        self._cache = moid_cache

    def list(self, type='VirtualMachine'):
        """Lists names of the managed objects of the type, sorted."""
        bag = self._session.get_properties(of=type, properties=['name'])
        return sorted(props.get('name', '') for props in bag.values())

    def get_moid(self, name, type='VirtualMachine'):
        """Returns the reference of the managed object by its name."""
        utils.check_required(name=name)
        moid = self._cache.get(type, name)
        if moid is not None:
            return moid
        bag = self._session.get_properties(of=type, where={'name': name},
                                           properties=['name'])
        if not bag:
            raise error_util.ManagedObjectNotFoundError(type, name)
        moid = sorted(bag, key=lambda mor: mor.value)[0]
        self._cache.set(type, name, moid)
        return moid

    def delete(self, name, type='VirtualMachine'):
        """Removes the managed object and its files."""
        utils.check_required(name=name)
        LOG.debug("Delete %s with name '%s'", type, name)
        self._session.run_task(type, self.get_moid(name, type),
                               'Destroy_Task')
        self._cache.remove(type, name)
        return True

    def _get_vm_property(self, vm_name, path):
        utils.check_required(vm_name=vm_name)
        try:
            return self._session.get_property(path,
                                              where={'name': vm_name})
        except error_util.ManagedObjectNotFoundError:
            raise error_util.ManagedObjectNotFoundError('VirtualMachine',
                                                        vm_name)

    def get_vm_path(self, vm_name):
        """Returns path to the VM configuration file."""
        return self._get_vm_property(vm_name, 'config.files.vmPathName')

    def get_vm_powerstate(self, vm_name):
        """Returns poweredOff, poweredOn or suspended."""
        return self._get_vm_property(vm_name, 'runtime.powerState')

    def tools_is_running(self, vm_name):
        """Returns True if VMware Tools is running in the guest."""
        status = self._get_vm_property(vm_name, 'guest.toolsRunningStatus')
        return status == 'guestToolsRunning'

    def _call_on_vm(self, call, vm_name, method, spec=None):
        """Calls the method on the VM, forgetting a stale cached id."""
        utils.check_required(vm_name=vm_name)
        try:
            return call('VirtualMachine', self.get_moid(vm_name), method,
                        spec)
        except error_util.VimFaultException as excep:
            if error_util.MANAGED_OBJECT_NOT_FOUND in excep.fault_list:
                self._cache.remove('VirtualMachine', vm_name)
            raise

    def _vm_task(self, vm_name, method, spec=None):
        return self._call_on_vm(self._session.run_task, vm_name, method,
                                spec)

    def _vm_request(self, vm_name, method, spec=None):
        return self._call_on_vm(self._session.request, vm_name, method,
                                spec)

    def poweron_vm(self, vm_name):
        """Powers on the VM, resuming it if suspended."""
        LOG.debug("Power on VM '%s'", vm_name)
        self._vm_task(vm_name, 'PowerOnVM_Task')
        return True

    def poweroff_vm(self, vm_name):
        """Powers off the VM."""
        LOG.debug("Power off VM '%s'", vm_name)
        self._vm_task(vm_name, 'PowerOffVM_Task')
        return True

    def shutdown_vm(self, vm_name):
        """
        Asks the guest to shut down. Returns immediately and does not
        wait for the guest to complete the operation.
        """
        LOG.debug("Shutdown VM '%s'", vm_name)
        self._vm_request(vm_name, 'ShutdownGuest')
        return True

    def reboot_vm(self, vm_name):
        """Asks the guest to reboot without waiting for it."""
        LOG.debug("Reboot VM '%s'", vm_name)
        self._vm_request(vm_name, 'RebootGuest')
        return True

    def list_snapshots(self, vm_name):
        """Returns {snapshot id: snapshot name} for the whole tree."""
        utils.check_required(vm_name=vm_name)
        roots = self._session.get_property('snapshot.rootSnapshotList',
                                           moid=self.get_moid(vm_name))
        snapshots = {}

        def _traverse(nodes):
            for node in vim_util.as_list(nodes):
                if not isinstance(node, dict) or 'snapshot' not in node:
                    continue
                snapshots[str(node['snapshot'])] = node.get('name')
                _traverse(node.get('childSnapshotList'))

        _traverse(roots)
        return snapshots

    def create_snapshot(self, vm_name, name=None, description='',
                        memory=False, quiesce=False):
        """
        Creates a snapshot of the VM. As a side effect, this updates
        the current snapshot.

        :param name: name for the new snapshot (required)
        :param description: description of the snapshot
        :param memory: include a dump of the VM memory
        :param quiesce: quiesce the guest file systems using VMware Tools
        """
        utils.check_required(vm_name=vm_name, name=name)
        LOG.debug("Create the snapshot '%s' for VM '%s'", name, vm_name)
        spec = [vim_util.new_element('name', name),
                vim_util.new_element('description', description or ''),
                vim_util.new_element('memory', bool(memory)),
                vim_util.new_element('quiesce', bool(quiesce))]
        return self._vm_task(vm_name, 'CreateSnapshot_Task', spec)

    def revert_to_current_snapshot(self, vm_name):
        """Reverts the VM to the current snapshot, if any."""
        LOG.debug("Revert VM '%s' to the current snapshot", vm_name)
        self._vm_task(vm_name, 'RevertToCurrentSnapshot_Task')
        return True

    def revert_to_snapshot(self, snapshot):
        """Reverts the VM to the snapshot with the given ID."""
        utils.check_required(snapshot=snapshot)
        LOG.debug("Revert to snapshot %s", snapshot)
        self._session.run_task('VirtualMachineSnapshot', str(snapshot),
                               'RevertToSnapshot_Task')
        return True

    def remove_snapshot(self, snapshot, removeChildren=True,
                        consolidate=True):
        """
        Removes the snapshot and deletes any associated storage.

        :param removeChildren: remove the entire snapshot subtree
        :param consolidate: merge the snapshot disk with other disks
        """
        utils.check_required(snapshot=snapshot)
        LOG.debug("Remove snapshot with ID = %s", snapshot)
        spec = [vim_util.new_element('removeChildren', bool(removeChildren)),
                vim_util.new_element('consolidate', bool(consolidate))]
        self._session.run_task('VirtualMachineSnapshot', str(snapshot),
                               'RemoveSnapshot_Task', spec)
        return True

    def reconfigure_vm(self, vm_name, numCPUs=None, numCoresPerSocket=None,
                       memoryMB=None):
        """Modifies the number of CPUs, cores per socket or memory (MB)."""
        LOG.debug("Reconfigure VM '%s'", vm_name)
        spec = vm_util.get_vm_config_spec(
            numCPUs=numCPUs, numCoresPerSocket=numCoresPerSocket,
            memoryMB=memoryMB)
        self._vm_task(vm_name, 'ReconfigVM_Task', spec)
        return True

    def connect_cdrom(self, vm_name, iso):
        """Mounts an ISO image to the virtual CD/DVD device."""
        utils.check_required(iso=iso)
        LOG.debug("Connect ISO '%s' to VM '%s'", iso, vm_name)
        self._vm_task(vm_name, 'ReconfigVM_Task',
                      vm_util.get_cdrom_attach_config_spec(iso))
        return True

    def disconnect_cdrom(self, vm_name):
        LOG.debug("Disconnect virtual CD/DVD from VM '%s'", vm_name)
        self._vm_task(vm_name, 'ReconfigVM_Task',
                      vm_util.get_cdrom_detach_config_spec())
        return True

    def connect_floppy(self, vm_name, image):
        utils.check_required(image=image)
        LOG.debug("Connect floppy image '%s' to VM '%s'", image, vm_name)
        self._vm_task(vm_name, 'ReconfigVM_Task',
                      vm_util.get_floppy_attach_config_spec(image))
        return True

    def disconnect_floppy(self, vm_name):
        LOG.debug("Disconnect virtual floppy from VM '%s'", vm_name)
        self._vm_task(vm_name, 'ReconfigVM_Task',
                      vm_util.get_floppy_detach_config_spec())
        return True

    def mount_tools_installer(self, vm_name):
        """Mounts the VMware Tools CD installer for the guest."""
        LOG.debug("Mount VMware Tools installer to VM '%s'", vm_name)
        self._vm_request(vm_name, 'MountToolsInstaller')
        return True

    def register_vm(self, vm_name, datacenter=None, cluster=None, host=None,
                    path=None, as_template=False):
        """
        Registers a VM in the inventory.

        :param datacenter: name of the target datacenter (required)
        :param cluster: name of the target cluster
        :param host: name of the target host (required)
        :param path: datastore path of the .vmx file (required)
        :param as_template: register as a template
        """
        utils.check_required(vm_name=vm_name, datacenter=datacenter,
                             host=host, path=path)
        LOG.debug("Register %s as %s at %s", path, vm_name, host)
        vm_folder = self._session.get_property(
            'vmFolder', of='Datacenter', where={'name': datacenter})
        if cluster is not None:
            pool = self._session.get_property(
                'resourcePool', of='ClusterComputeResource',
                where={'name': cluster})
        else:
            pool = self._session.get_property(
                'resourcePool', of='ComputeResource', where={'name': host})
        spec = [vim_util.new_element('path', path),
                vim_util.new_element('name', vm_name),
                vim_util.new_element('asTemplate', bool(as_template)),
                vim_util.new_element('pool', MOR('ResourcePool', str(pool))),
                vim_util.new_element('host', self.get_moid(host,
                                                           'HostSystem'))]
        return self._session.run_task('Folder', vm_folder,
                                      'RegisterVM_Task', spec)

    def unregister_vm(self, vm_name):
        """
        Removes the VM from the inventory without removing any of its
        files on disk.
        """
        LOG.debug("Unregister the VM %s", vm_name)
        self._vm_request(vm_name, 'UnregisterVM')
        self._cache.remove('VirtualMachine', vm_name)
        return True

    def _get_parent_folder(self, vm_name, props):
        parent = props.get('parent')
        if props.get('parentVApp'):
            parent = self._session.get_property(
                'parentFolder', of='VirtualApp', moid=props['parentVApp'])
        if not parent:
            raise error_util.VimException(
                "Can't get parent folder for VM '%s'" % vm_name)
        return MOR('Folder', str(parent))

    def _get_vm_clone_props(self, vm_name, properties):
        utils.check_required(vm_name=vm_name)
        bag = self._session.get_properties(properties=properties,
                                           where={'name': vm_name})
        if not bag:
            raise error_util.ManagedObjectNotFoundError('VirtualMachine',
                                                        vm_name)
        vm_ref = sorted(bag, key=lambda mor: mor.value)[0]
        return vm_ref, bag[vm_ref]

    def clone(self, vm_name, clone_name, datastore=None, folder=None):
        """
        Creates a clone of the VM. If the VM is a template, this is a
        deploy.

        :param datastore: name of the target datastore
        :param folder: ID of the destination folder
        """
        utils.check_required(clone_name=clone_name)
        LOG.debug("Clone '%s' as '%s'", vm_name, clone_name)
        vm_ref, props = self._get_vm_clone_props(
            vm_name, ['parent', 'parentVApp', 'datastore'])
        if datastore is not None:
            datastore_ref = self.get_moid(datastore, 'Datastore')
        else:
            datastores = vim_util.as_list(props.get('datastore'))
            if not datastores:
                raise error_util.VimException(
                    "Can't get datastore of the VM '%s'" % vm_name)
            if len(datastores) > 1:
                raise error_util.ValidationError(
                    "VM '%s' located at more than one datastore, please "
                    "specify 'datastore' option" % vm_name)
            datastore_ref = datastores[0]
        if folder is not None:
            parent = MOR('Folder', str(folder))
        else:
            parent = self._get_parent_folder(vm_name, props)
        spec = vm_util.get_clone_spec(parent, clone_name,
                                      datastore=datastore_ref)
        return self._session.run_task('VirtualMachine', vm_ref,
                                      'CloneVM_Task', spec)

    def linked_clone(self, vm_name, clone_name):
        """Creates a linked clone from the current snapshot of the VM."""
        utils.check_required(clone_name=clone_name)
        LOG.debug("Create linked clone with name '%s' from VM %s",
                  clone_name, vm_name)
        vm_ref, props = self._get_vm_clone_props(
            vm_name, ['parent', 'parentVApp', 'snapshot.currentSnapshot'])
        snapshot = props.get('snapshot.currentSnapshot')
        if not snapshot:
            raise error_util.VimException(
                "Can't get current snapshot for VM '%s'" % vm_name)
        parent = self._get_parent_folder(vm_name, props)
        spec = vm_util.get_clone_spec(parent, clone_name, snapshot=snapshot)
        return self._session.run_task('VirtualMachine', vm_ref,
                                      'CloneVM_Task', spec)

    def _get_process_manager(self):
        return self._session.get_property(
            'processManager', of='GuestOperationsManager',
            moid=self._session.service_content.guestOperationsManager)

    def run_in_vm(self, vm_name, username, password, cmd, args='', dir=None,
                  env=None):
        """
        Starts a program in the guest and returns its pid. The exit code
        stays available for 5 minutes after the process completes.

        :param username: login in the guest
        :param password: password for this login
        :param cmd: absolute path to the program
        :param args: program arguments, run through the guest shell
        :param dir: working directory of the program
        :param env: list of NAME=value environment variables
        """
        utils.check_required(vm_name=vm_name, username=username,
                             password=password, cmd=cmd)
        LOG.debug("Run '%s %s' in %s", cmd, args, vm_name)
        process_manager = self._get_process_manager()
        spec = [vim_util.new_element('vm', self.get_moid(vm_name)),
                vm_util.get_guest_auth(username, password),
                vm_util.get_program_spec(cmd, args, dir, env)]
        response = self._session.request('GuestProcessManager',
                                         process_manager,
                                         'StartProgramInGuest', spec)
        returnval = response.getChild('returnval')
        pid = returnval.getText('') if returnval is not None else ''
        if not pid.isdigit():
            raise error_util.ProtocolError(
                "Invalid response: %s" % response.plain())
        return int(pid)

    def list_vm_processes(self, vm_name, username, password, *pids):
        """
        Lists the processes running in the guest plus those started by
        run_in_vm that have recently completed, keyed by pid.
        """
        utils.check_required(vm_name=vm_name, username=username,
                             password=password)
        process_manager = self._get_process_manager()
        spec = [vim_util.new_element('vm', self.get_moid(vm_name)),
                vm_util.get_guest_auth(username, password)]
        spec.extend(vim_util.new_element('pids', pid) for pid in pids)
        response = self._session.request('GuestProcessManager',
                                         process_manager,
                                         'ListProcessesInGuest', spec)
        processes = {}
        for returnval in response.getChildren('returnval'):
            info = vim_util.to_value(returnval)
            if not isinstance(info, dict) or 'pid' not in info:
                raise error_util.ProtocolError(
                    "Invalid process info: %s" % returnval.plain())
            pid = int(info.pop('pid'))
            processes[pid] = info
        return processes
