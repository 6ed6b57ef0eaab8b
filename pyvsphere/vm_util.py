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
The VMware API VM utility module to build SOAP object specs.
"""

from pyvsphere import vim_util

new_element = vim_util.new_element

CDROM_KEY = 3002
CDROM_CONTROLLER_KEY = 201
FLOPPY_KEY = 8000
FLOPPY_CONTROLLER_KEY = 400
NEW_DISK_KEY = -100

DISK_MODES = ('persistent', 'nonpersistent', 'independent_nonpersistent',
              'independent_persistent', 'append', 'undoable')


def _connectable(start_connected, allow_guest_control, connected,
                 status=None):
    children = [
        new_element('startConnected', start_connected),
        new_element('allowGuestControl', allow_guest_control),
        new_element('connected', connected),
    ]
    if status is not None:
        children.append(new_element('status', status))
    return new_element('connectable', children)


def _device_info(label, summary):
    return new_element('deviceInfo', [new_element('label', label),
                                      new_element('summary', summary)])


def _device_change(operation, device, file_operation=None):
    children = [new_element('operation', operation)]
    if file_operation is not None:
        children.append(new_element('fileOperation', file_operation))
    children.append(device)
    return new_element('deviceChange', children)


def get_vm_config_spec(**config):
    """Builds the VM config spec with the given scalar settings.

    Settings are emitted in the order the schema requires them.
    """
    order = ('numCPUs', 'numCoresPerSocket', 'memoryMB')
    return new_element('spec', [new_element(name, config[name])
                                for name in order
                                if config.get(name) is not None])


def get_cdrom_attach_config_spec(iso):
    """Builds the config spec mounting an ISO image on the CD/DVD drive."""
    device = new_element('device', [
        new_element('key', CDROM_KEY),
        _device_info('CD/DVD drive 1', 'Remote device'),
        new_element('backing', [new_element('fileName', iso)],
                    xsi_type='VirtualCdromIsoBackingInfo'),
        _connectable(False, True, True, 'ok'),
        new_element('controllerKey', CDROM_CONTROLLER_KEY),
        new_element('unitNumber', 0),
    ], xsi_type='VirtualCdrom')
    return new_element('spec', [_device_change('edit', device)])


def get_cdrom_detach_config_spec():
    """Builds the config spec switching the CD/DVD drive to a remote device."""
    device = new_element('device', [
        new_element('key', CDROM_KEY),
        _device_info('CD/DVD drive 1', 'Remote device'),
        new_element('backing', [new_element('deviceName', '')],
                    xsi_type='VirtualCdromRemoteAtapiBackingInfo'),
        _connectable(False, True, False, 'ok'),
        new_element('controllerKey', CDROM_CONTROLLER_KEY),
        new_element('unitNumber', 0),
    ], xsi_type='VirtualCdrom')
    return new_element('spec', [_device_change('edit', device)])


def get_floppy_attach_config_spec(image):
    device = new_element('device', [
        new_element('key', FLOPPY_KEY),
        _device_info('Floppy drive 1', 'Remote'),
        new_element('backing', [new_element('fileName', image)],
                    xsi_type='VirtualFloppyImageBackingInfo'),
        _connectable(False, True, True, 'untried'),
        new_element('controllerKey', FLOPPY_CONTROLLER_KEY),
        new_element('unitNumber', 0),
    ], xsi_type='VirtualFloppy')
    return new_element('spec', [_device_change('edit', device)])


def get_floppy_detach_config_spec():
    device = new_element('device', [
        new_element('key', FLOPPY_KEY),
        _device_info('Floppy drive 1', 'Client Device'),
        new_element('backing', [new_element('deviceName', '')],
                    xsi_type='VirtualFloppyRemoteDeviceBackingInfo'),
        _connectable(False, True, False, 'ok'),
        new_element('controllerKey', FLOPPY_CONTROLLER_KEY),
        new_element('unitNumber', 0),
    ], xsi_type='VirtualFloppy')
    return new_element('spec', [_device_change('edit', device)])


def get_vmdk_attach_config_spec(size=None, file=None, thin=True,
                                controller=1000, unit=1, mode='persistent'):
    """Builds the config spec adding a new or an existing virtual disk.

    A new disk of `size` KB is created when no `file` is given.
    """
    backing = new_element('backing', [
        new_element('fileName', file or ''),
        new_element('diskMode', mode),
        new_element('split', False),
        new_element('writeThrough', False),
        new_element('thinProvisioned', bool(thin)),
        new_element('eagerlyScrub', False),
    ], xsi_type='VirtualDiskFlatVer2BackingInfo')
    device = new_element('device', [
        new_element('key', NEW_DISK_KEY),
        backing,
        _connectable(True, False, True),
        new_element('controllerKey', controller),
        new_element('unitNumber', unit),
        new_element('capacityInKB', '' if size is None else size),
    ], xsi_type='VirtualDisk')
    file_operation = None if file else 'create'
    return new_element('spec', [_device_change('add', device,
                                                file_operation)])


def _shares(shares):
    shares = shares if isinstance(shares, dict) else {}
    return new_element('shares', [new_element('shares', shares.get('shares')),
                                  new_element('level', shares.get('level'))])


def get_vmdk_detach_config_spec(device, destroy=True):
    """Builds the config spec removing the virtual disk `device`.

    `device` is the flattened VirtualDisk from config.hardware.device.
    """
    info = device.get('deviceInfo') or {}
    backing = device.get('backing') or {}
    io_allocation = device.get('storageIOAllocation') or {}
    backing_fields = ('fileName', 'diskMode', 'split', 'writeThrough',
                      'thinProvisioned', 'uuid', 'contentId',
                      'digestEnabled')
    children = [
        new_element('key', device.get('key')),
        _device_info(info.get('label'), info.get('summary')),
        new_element('backing',
                    [new_element(field, backing.get(field))
                     for field in backing_fields],
                    xsi_type='VirtualDiskFlatVer2BackingInfo'),
    ]
    for field in ('controllerKey', 'unitNumber', 'capacityInKB'):
        children.append(new_element(field, device.get(field)))
    children.append(_shares(device.get('shares')))
    children.append(new_element('storageIOAllocation', [
        new_element('limit', io_allocation.get('limit')),
        _shares(io_allocation.get('shares')),
    ]))
    disk = new_element('device', children, xsi_type='VirtualDisk')
    file_operation = 'destroy' if destroy else None
    return new_element('spec', [_device_change('remove', disk,
                                                file_operation)])


def get_guest_auth(username, password):
    return new_element('auth', [
        new_element('interactiveSession', False),
        new_element('username', username),
        new_element('password', password),
    ], xsi_type='NamePasswordAuthentication')


def get_program_spec(cmd, args='', dir=None, env=None):
    children = [new_element('programPath', cmd),
                new_element('arguments', args or '')]
    if dir:
        children.append(new_element('workingDirectory', dir))
    for variable in env or []:
        children.append(new_element('envVariables', variable))
    return new_element('spec', children)


def get_clone_spec(folder, clone_name, datastore=None, snapshot=None):
    """CloneVM_Task arguments; a snapshot makes it a linked clone."""
    if snapshot is not None:
        location = [new_element('diskMoveType', 'createNewChildDiskBacking')]
    else:
        location = [new_element('datastore', datastore)]
    spec = [new_element('location', location),
            new_element('template', False),
            new_element('powerOn', False)]
    if snapshot is not None:
        spec.append(new_element('snapshot', snapshot))
    return [new_element('folder', folder),
            new_element('name', clone_name),
            new_element('spec', spec)]


def get_datastore_search_spec(datastore_path, pattern, case_sensitive=False,
                              with_info=False):
    details = [new_element(name, bool(with_info))
               for name in ('fileType', 'fileSize', 'modification',
                            'fileOwner')]
    return [
        new_element('datastorePath', datastore_path),
        new_element('searchSpec', [
            new_element('query', xsi_type='FolderFileQuery'),
            new_element('query'),
            new_element('details', details),
            new_element('searchCaseInsensitive', not case_sensitive),
            new_element('matchPattern', pattern),
            new_element('sortFoldersFirst', False),
        ]),
    ]


def get_nas_spec(remote_host, remote_path, local_path,
                 access_mode='readWrite', type='nfs'):
    return new_element('spec', [
        new_element('remoteHost', remote_host),
        new_element('remotePath', remote_path),
        new_element('localPath', local_path),
        new_element('accessMode', access_mode),
        new_element('type', type),
    ])


def get_portgroup_spec(portgroup, vswitch, vlan=0):
    return new_element('portgrp', [
        new_element('name', portgroup),
        new_element('vlanId', vlan),
        new_element('vswitchName', vswitch),
        new_element('policy'),
    ])
